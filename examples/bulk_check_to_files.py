"""Bulk check names from a file

Reads candidate names one per line, writes forbidden ones and failed checks to
separate files and reuses the cached session from `nameprobe set-cookies`.
"""
import logging

from python_nameprobe import SessionStore, NameChecker

logging.basicConfig(level=logging.INFO)

store = SessionStore()
client = store.load()
if client is None:
    raise SystemExit("No cached session, run: nameprobe set-cookies '<cookie header>'")

checker = NameChecker(client, interval=2.0)

with open('names.txt', encoding='utf-8') as names, \
        open('forbidden.txt', 'x', encoding='utf-8') as forbidden, \
        open('failed.txt', 'x', encoding='utf-8') as failed:
    summary = checker.check_many(names, forbidden_sink=forbidden, failure_sink=failed)

print(f"{summary.valid} valid, {summary.forbidden} forbidden, {summary.failed} failed")
store.save(client)
