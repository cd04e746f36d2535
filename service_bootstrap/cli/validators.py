"""Input validation for CLI arguments."""
import re
import sys

KEY_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')


def validate_key_name(name: str) -> None:
    """
    Validate a configuration key can be mapped to a Secret Manager secret id.

    Secret ids allow only: [a-zA-Z0-9_-]

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not name:
        print("Error: Key name cannot be empty", file=sys.stderr)
        sys.exit(2)

    if not KEY_PATTERN.match(name):
        print(f"Error: Invalid key name '{name}'", file=sys.stderr)
        print("\nAllowed characters: letters, numbers, underscores (_), hyphens (-)", file=sys.stderr)
        print("Examples of valid names:", file=sys.stderr)
        print("  ✓ DB_PASSWORD", file=sys.stderr)
        print("  ✓ db-password", file=sys.stderr)
        sys.exit(2)
