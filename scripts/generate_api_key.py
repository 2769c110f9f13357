#!/usr/bin/env python3
"""CLI tool to generate API keys for center administrators and super-admins."""
import sys

from dotenv import load_dotenv

load_dotenv()

from clinicdesk import config
from clinicdesk.auth import APIKeyManager


def main():
    """Generate API key for a center administrator or a super-admin."""
    if len(sys.argv) < 3:
        print("Usage: python scripts/generate_api_key.py <user_id> <center_id|--super> [description]")
        print("\nExamples:")
        print("  python scripts/generate_api_key.py maria baraure 'Front desk'")
        print("  python scripts/generate_api_key.py root --super 'Platform owner'")
        sys.exit(1)

    user_id = sys.argv[1]
    is_super_admin = sys.argv[2] == "--super"
    center_id = None if is_super_admin else sys.argv[2]
    description = sys.argv[3] if len(sys.argv) > 3 else None

    manager = APIKeyManager(database_url=config.DATABASE_URL)
    api_key = manager.generate_api_key(
        user_id,
        center_id=center_id,
        is_super_admin=is_super_admin,
        description=description
    )

    scope = "all centers (super-admin)" if is_super_admin else f"center {center_id}"
    print(f"\n✅ API Key generated for {user_id}: {scope}")
    if description:
        print(f"   Description: {description}")
    print(f"\n🔑 API Key: {api_key}")
    print("\n⚠️  IMPORTANT: Save this key securely! It cannot be retrieved later.")
    print("\n📋 Usage Example:")
    if is_super_admin:
        print("  curl http://localhost:8000/api/v1/super/centers \\")
    else:
        print(f"  curl http://localhost:8000/api/v1/admin/centers/{center_id}/appointments \\")
    print(f"    -H 'X-API-Key: {api_key}'\n")


if __name__ == "__main__":
    main()
