"""
Django management command to generate an identity escrow key.

Usage:
    python manage.py generate_identity_key
    python manage.py generate_identity_key --check

Store the printed value as IDENTITY_ENCRYPTION_KEY. Responses sealed under a
key can only be revealed with that same key, so never rotate it without
re-encrypting stored identities first.
"""

from django.core.management.base import BaseCommand, CommandError

from staffpulse_app.surveys.errors import EncryptionUnavailable
from staffpulse_app.surveys.services.identity_escrow import (
    generate_identity_key,
    get_identity_key,
)


class Command(BaseCommand):
    help = "Generate a base64 AES-256 key for IDENTITY_ENCRYPTION_KEY"

    def add_arguments(self, parser):
        parser.add_argument(
            "--check",
            action="store_true",
            help="Validate the configured key instead of generating a new one",
        )

    def handle(self, *args, **options):
        if options["check"]:
            try:
                get_identity_key()
            except EncryptionUnavailable as e:
                raise CommandError(str(e))
            self.stdout.write(self.style.SUCCESS("IDENTITY_ENCRYPTION_KEY is valid"))
            return

        self.stdout.write(generate_identity_key())
        self.stderr.write(
            self.style.WARNING(
                "Store this key in IDENTITY_ENCRYPTION_KEY. It is not saved anywhere."
            )
        )
