# generate_key.py
import secrets
import sys


def generate_api_key(nbytes: int = 32) -> str:
    # URL-safe, roughly 1.3 characters per random byte
    return secrets.token_urlsafe(nbytes)


if __name__ == "__main__":
    nbytes = int(sys.argv[1]) if len(sys.argv) > 1 else 32
    key = generate_api_key(nbytes)
    print(f"\n🔑 Gut Tracker proxy key:\n\n{key}\n")
    print("👉 Set it as API_KEY for the backend and send it as X-API-Key from the auth proxy.\n")
