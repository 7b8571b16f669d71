"""Print a DIAGNOSTICS_PASSWORD_HASH line for .env."""

import getpass

from dialtune.security.auth import hash_password


def main():
    password = getpass.getpass("Diagnostics password: ")
    if not password:
        print("Empty password; diagnostics stay disabled.")
        return
    print("DIAGNOSTICS_PASSWORD_HASH=", hash_password(password), sep="")


if __name__ == "__main__":
    main()
