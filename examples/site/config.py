CONFIG = {
    "name": "Lapa Site",
    "debug": True,
    "session": {"name": "site_session"},
    "cache": {"ttl": 600},
}
