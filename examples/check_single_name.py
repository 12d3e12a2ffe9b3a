"""Check one filename

Derives the session keys from a browser cookie and probes a single name.
"""
from python_nameprobe import ProbeClient, NameChecker, NameProbeError

COOKIES = 'UID=...; CID=...; SEID=...'
NAME = 'holiday-photos-2024.zip'

client = ProbeClient(COOKIES)
checker = NameChecker(client)

print(f"=== Checking {NAME!r} ===")
try:
    if checker.check_one(NAME):
        print("Name passes the censor")
    else:
        print("Name is rejected by the censor")
except NameProbeError as e:
    print(f"Check failed: {type(e).__name__}: {e}")

print(f"User id derived from cookie: {client.user_id}")
