"""
Download the IPRESS monthly shift spreadsheet from a running backend.

Usage (from backend/):
    python scripts/export_monthly_report.py --month 2025-06 --user admin --password secret
    python scripts/export_monthly_report.py --month 2025-06 --section 3 --out junio.xlsx --base-url http://127.0.0.1:8000

Exit code 1 when the month has no shifts for the filters (the API answers 404).
"""
import argparse
import asyncio
import os
import sys

_SCRIPT_DIR = os.path.dirname(__file__)
_BACKEND_DIR = os.path.abspath(os.path.join(_SCRIPT_DIR, ".."))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from clinic_scheduler.client.api_client import ApiClientError, ClinicApiClient
from clinic_scheduler.services.report_export import report_filename


async def run(args: argparse.Namespace) -> int:
    async with ClinicApiClient(args.base_url) as client:
        user = await client.login(args.user, args.password)
        print(f"Logged in as {user['username']} ({user['role']})")
        try:
            content = await client.monthly_report(
                args.month,
                specialty_id=args.specialty,
                service_id=args.section,
                doctor_id=args.doctor,
            )
        except ApiClientError as e:
            print(f"[{e.status_code}] {e.message}")
            return 1

    out = args.out or report_filename(args.month)
    with open(out, "wb") as f:
        f.write(content)
    print(f"Saved {len(content)} bytes to {out}")
    return 0


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--month", required=True, help="YYYY-MM")
    parser.add_argument("--specialty", type=int, default=None, help="Specialty id filter")
    parser.add_argument("--section", type=int, default=None, help="Section (service) id filter")
    parser.add_argument("--doctor", type=int, default=None, help="Doctor id filter")
    parser.add_argument("--user", required=True, help="Username or email")
    parser.add_argument("--password", required=True)
    parser.add_argument("--base-url", default="http://127.0.0.1:8000", help="Backend base URL")
    parser.add_argument("--out", default=None, help="Output file (default reporte-turnos-<month>.xlsx)")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
