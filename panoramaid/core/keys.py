from __future__ import annotations

KEY_ID = "panoramaId"
KEY_EXPIRY = f"{KEY_ID}_expiry"
KEY_PROFILE = "_cc_id"

KEY_US_PRIVACY = "us_privacy"
# Порядок важен: первый найденный выигрывает.
KEYS_CONSENT_STRING = ("eupubconsent-v2", "euconsent-v2")

NINE_MONTHS_MS = 23328000 * 1000


def client_expiry_key(client_id: str) -> str:
    return f"{KEY_EXPIRY}_{client_id}"
