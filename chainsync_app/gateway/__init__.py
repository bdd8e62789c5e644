"""
Contract gateway module.

Builds, estimates, submits and confirms one logical contract operation, and
performs direct reads. Talks to the remote endpoint only through the
``ContractEndpoint`` boundary in ``gateway.endpoint``.
"""
