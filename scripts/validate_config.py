#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path
from typing import List

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from chainsync_app.config.loader import ConfigLoader
from chainsync_app.config.validation import ConfigValidator, ValidationError


def validate_deployment(loader: ConfigLoader, name: str) -> List[ValidationError]:
    """Validate one deployment entry and its merged engine configuration."""
    raw = loader.load_deployments_file()[name]
    errors = ConfigValidator.validate_deployment(name, raw)
    errors.extend(ConfigValidator.validate_config(loader.merge_config(name)))
    return errors


def main():
    """Main validation function."""
    print("🔍 Validating ChainSync deployments...")

    loader = ConfigLoader.create(Path(sys.argv[1]) if len(sys.argv) > 1 else None)
    deployments = loader.list_deployments()
    if not deployments:
        print(f"❌ No deployments found in {loader.config_dir}")
        sys.exit(1)

    all_valid = True

    for name in deployments:
        print(f"\n📄 Validating {name}...")

        try:
            errors = validate_deployment(loader, name)

            if errors:
                print(f"❌ Found {len(errors)} validation errors:")
                for error in errors:
                    print(f"  • {error.field}: {error.message} (value: {error.value})")
                all_valid = False
                continue

            deployment = loader.load_deployment(name)
            print(f"✅ {name}: {deployment.address} on chain {deployment.chain_id}, "
                  f"{len(deployment.methods)} methods")

        except Exception as e:
            print(f"❌ Error validating {name}: {e}")
            all_valid = False

    if all_valid:
        print(f"\n🎉 All deployments are valid!")
        sys.exit(0)
    else:
        print(f"\n❌ Configuration validation failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
