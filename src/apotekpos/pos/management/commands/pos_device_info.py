"""Management command to show how this terminal is registered with the backend."""

from django.conf import settings
from django.core.management.base import BaseCommand

from apotekpos.pos import api_client, system_client
from apotekpos.pos.exceptions import PosApiError, PosApiUnavailable, SystemServiceError


class Command(BaseCommand):
    help = "Print the device id, MAC address, kassa and next invoice number of this terminal"

    def add_arguments(self, parser):
        parser.add_argument(
            "--token",
            default="",
            help="Bearer token for backend lookups (kassa and next invoice)",
        )

    def handle(self, *args, **options):
        device_id = system_client.get_device_id()
        if not device_id:
            self.stdout.write(
                self.style.ERROR(f"No device id. Is the device service running on {settings.POS_SYSTEM_SERVICE_URL}?")
            )
            return
        self.stdout.write(f"Device ID: {device_id}")

        try:
            info = system_client.get_system_info()
        except SystemServiceError as e:
            self.stdout.write(self.style.WARNING(f"System info unavailable: {e.message}"))
        else:
            self.stdout.write(f"Hostname: {info.hostname}")
            self.stdout.write(f"MAC address: {info.primary_mac_address or '-'}")

        token = options["token"]
        if not token:
            self.stdout.write(self.style.WARNING("No --token given. Skipping kassa and invoice lookup."))
            return

        try:
            kassa = api_client.get_kassa(token, device_id) or {}
            transaction_type = str(kassa.get("default_jual") or settings.POS_DEFAULT_TRANSACTION_TYPE)
            invoice_number = api_client.get_next_invoice(token, transaction_type)
        except (PosApiError, PosApiUnavailable) as e:
            self.stdout.write(self.style.ERROR(f"Backend lookup failed: {e}"))
            return

        self.stdout.write(f"Kassa: {kassa.get('no_kassa') or kassa.get('id_kassa') or '-'}")
        self.stdout.write(f"Default transaction type: {transaction_type}")
        self.stdout.write(self.style.SUCCESS(f"Next invoice: {invoice_number}"))
