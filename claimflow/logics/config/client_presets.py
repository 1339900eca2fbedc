"""
Column-letter presets per client export layout.

Keys match the ColumnMapping field names. 'dateCols' is informational and is not
part of the resolved mapping.
"""

CLIENT_PRESETS = {
    "solis": {
        "label": "Clean Age (Q):",
        "cleanAge": "Q", "claimStatus": "I", "payer": "A", "networkStatus": "V", "dsnp": "Y",
        "claimType": "B", "totalCharges": "T", "dateCols": "E,O,P", "notes": "AA", "claimNumber": "C",
    },
    "liberty": {
        "label": "Age (R):",
        "cleanAge": "R", "claimStatus": "I", "payer": "A", "networkStatus": "V", "dsnp": "Y",
        "claimType": "B", "totalCharges": "T", "dateCols": "E,O,P", "notes": "AA", "claimNumber": "C",
    },
    "secur": {
        "label": "Clean Age (Q):",
        "cleanAge": "Q", "claimStatus": "I", "payer": "A", "networkStatus": "V", "dsnp": "Y",
        "claimType": "D", "totalCharges": "T", "dateCols": "E,O,P", "notes": "AA", "claimNumber": "C",
    },
    "csh": {
        "label": "Age (R):",
        "cleanAge": "R", "claimStatus": "I", "payer": "A", "networkStatus": "U", "dsnp": "Y",
        "claimType": "B", "totalCharges": "T", "dateCols": "E,O,P", "notes": "AA", "claimNumber": "C",
    },
}

CLIENT_DISPLAY_NAMES = {
    "solis": "Solis",
    "liberty": "Liberty",
    "secur": "SecurHealth",
    "csh": "CSH",
}


def get_client_preset(client: str) -> dict:
    """
    Return a copy of the preset for a client key (case-insensitive).

    Raises:
        KeyError: If the client has no preset
    """
    key = (client or "").strip().lower()
    if key not in CLIENT_PRESETS:
        raise KeyError(client)
    return dict(CLIENT_PRESETS[key])


def get_all_clients() -> list:
    return sorted(CLIENT_PRESETS.keys())
