"""
API Performance Testing Script
Times the read endpoints of a running Bin2Win backend.

This script:
1. Logs in through the admin login endpoint
2. Calls every GET endpoint and measures its response time
3. Prints a report grouped by area and optionally saves it as JSON

Usage:
    BIN2WIN_API_URL=http://127.0.0.1:8000/api/v1 BIN2WIN_USERNAME=admin python api_performance.py
"""
import getpass
import json
import os
import sys
import time
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import requests
from dotenv import load_dotenv

load_dotenv()

BASE_URL = os.environ.get('BIN2WIN_API_URL', 'http://127.0.0.1:8000/api/v1').rstrip('/')
USERNAME = os.environ.get('BIN2WIN_USERNAME', '')
PASSWORD = os.environ.get('BIN2WIN_PASSWORD', '')
REQUEST_TIMEOUT = 30


class APITester:
    """Calls endpoints and keeps the timing of each"""

    def __init__(self, base_url: str):
        self.base_url = base_url
        self.results: List[Dict] = []
        self.session = requests.Session()

    def authenticate(self, username: str, password: str) -> bool:
        print(f"🔐 Authenticating as {username}...")
        try:
            response = self.session.post(
                f"{self.base_url}/auth/admin/login/",
                json={"username": username, "password": password},
                timeout=10,
            )
        except requests.RequestException as e:
            print(f"❌ Authentication error: {e}")
            return False

        if response.status_code != 200:
            print(f"❌ Authentication failed: {response.status_code}")
            print(f"Response: {response.text}")
            return False

        self.session.headers.update({'Authorization': f"Bearer {response.json()['access']}"})
        print("✅ Authentication successful!")
        return True

    def test_endpoint(self, name: str, endpoint: str, params: Optional[Dict] = None,
                      description: str = "") -> Dict:
        """Call one endpoint and record status, timing and item counts"""
        url = f"{self.base_url}{endpoint}"
        result = {
            'name': name,
            'endpoint': endpoint,
            'url': url,
            'description': description,
            'params': params or {},
            'timestamp': datetime.now().isoformat(),
        }
        try:
            start_time = time.perf_counter()
            response = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT)
            result['response_time_ms'] = round((time.perf_counter() - start_time) * 1000, 2)
        except requests.Timeout:
            result.update(status_code=0, response_time_ms=REQUEST_TIMEOUT * 1000, success=False,
                          error=f'Request timeout ({REQUEST_TIMEOUT}s)')
            self.results.append(result)
            return result
        except requests.RequestException as e:
            result.update(status_code=0, response_time_ms=0, success=False, error=str(e))
            self.results.append(result)
            return result

        result['status_code'] = response.status_code
        result['success'] = response.status_code == 200
        if response.headers.get('Content-Type', '').startswith('application/json'):
            data = response.json()
            if isinstance(data, list):
                result['item_count'] = len(data)
            elif isinstance(data, dict) and 'results' in data:
                result['item_count'] = len(data['results'])
                result['total_count'] = data.get('count', 0)
        if not result['success']:
            result['error'] = response.text[:500]
        self.results.append(result)
        return result

    def first_id(self, endpoint: str, params: Optional[Dict] = None) -> Optional[int]:
        """id of the first row a list endpoint returns"""
        try:
            response = self.session.get(f"{self.base_url}{endpoint}", params={**(params or {}), 'limit': 1},
                                        timeout=REQUEST_TIMEOUT)
        except requests.RequestException:
            return None
        if response.status_code != 200:
            return None
        data = response.json()
        rows = data.get('results', []) if isinstance(data, dict) else data
        return rows[0].get('id') if rows else None

    def print_result(self, result: Dict):
        status_icon = "✅" if result['success'] else "❌"
        status_color = "\033[92m" if result['success'] else "\033[91m"
        reset_color = "\033[0m"

        print(f"{status_icon} {result['name']}")
        print(f"   Endpoint: {result['endpoint']}")
        print(f"   Status: {status_color}{result['status_code']}{reset_color}")
        print(f"   Response Time: {result['response_time_ms']}ms")
        if result.get('item_count') is not None:
            print(f"   Items: {result['item_count']}")
        if result.get('total_count') is not None:
            print(f"   Total Count: {result['total_count']}")
        if not result['success'] and result.get('error'):
            print(f"   Error: {result['error'][:200]}")
        print()

    def generate_report(self):
        """Summary of every call, grouped by the part of the name before ' - '"""
        successful = [r for r in self.results if r['success']]
        total_tests = len(self.results)
        failed_tests = total_tests - len(successful)
        avg_response_time = sum(r['response_time_ms'] for r in successful) / len(successful) if successful else 0

        print("\n" + "=" * 80)
        print("📊 API PERFORMANCE TEST REPORT")
        print("=" * 80)
        print(f"Base URL: {self.base_url}")
        print(f"Test Date: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"\nTotal Tests: {total_tests}")
        print(f"Successful: {len(successful)} ✅")
        print(f"Failed: {failed_tests} ❌")
        if total_tests:
            print(f"Success Rate: {len(successful) / total_tests * 100:.1f}%")
        print(f"\nAverage Response Time: {avg_response_time:.2f}ms")
        if successful:
            fastest = min(successful, key=lambda r: r['response_time_ms'])
            slowest = max(successful, key=lambda r: r['response_time_ms'])
            print(f"Fastest: {fastest['name']} ({fastest['response_time_ms']}ms)")
            print(f"Slowest: {slowest['name']} ({slowest['response_time_ms']}ms)")

        print("\n" + "-" * 80)
        print("📋 RESULTS BY AREA")
        print("-" * 80)
        areas = {}
        for result in self.results:
            area = result['name'].split(' - ')[0] if ' - ' in result['name'] else 'Other'
            areas.setdefault(area, []).append(result)
        for area, results in sorted(areas.items()):
            ok = [r for r in results if r['success']]
            avg_time = sum(r['response_time_ms'] for r in ok) / len(ok) if ok else 0
            print(f"\n{area}: {len(ok)}/{len(results)} successful, avg {avg_time:.2f}ms")
            for result in sorted(results, key=lambda r: r['response_time_ms'], reverse=True):
                status_icon = "✅" if result['success'] else "❌"
                print(f"  {status_icon} {result['endpoint']}: {result['response_time_ms']}ms")

        if failed_tests:
            print("\n" + "-" * 80)
            print("❌ FAILED TESTS")
            print("-" * 80)
            for result in self.results:
                if not result['success']:
                    print(f"\n{result['name']}")
                    print(f"  Endpoint: {result['endpoint']}")
                    print(f"  Error: {result.get('error', 'Unknown error')[:200]}")
        print("\n" + "=" * 80)

    def save_results(self, filename: str = "api_test_results.json"):
        with open(filename, 'w') as f:
            json.dump({
                'test_date': datetime.now().isoformat(),
                'base_url': self.base_url,
                'total_tests': len(self.results),
                'successful_tests': sum(1 for r in self.results if r['success']),
                'results': self.results,
            }, f, indent=2)
        print(f"\n💾 Results saved to {filename}")


def endpoint_plan(tester: APITester) -> List[tuple]:
    """(name, endpoint, params) for every endpoint to time"""
    today = datetime.now().strftime("%Y-%m-%d")
    last_week = (datetime.now() - timedelta(days=7)).strftime("%Y-%m-%d")
    page = {"page": 1, "limit": 50}

    plan = [
        ("Users - Me", "/users/me/", None),
        ("Users - List", "/users/", page),
        ("Users - Search", "/users/", {**page, "search": "a"}),
        ("Users - Statistics", "/users/me/statistics/", None),
        ("Core - Settings", "/settings/", None),
        ("Core - Audit Logs", "/audit-logs/", page),
        ("Core - Global Search", "/search/", {"q": "ram"}),
        ("Booths - List", "/booths/", page),
        ("Booths - Nearby", "/booths/nearby/", {"lat": "23.1824", "lng": "75.7683", "radius": 5}),
        ("Waste - Types", "/waste/types/", None),
        ("Waste - Submissions", "/waste/submissions/", page),
        ("Waste - Submissions (Last 7 days)", "/waste/submissions/", {**page, "date_from": last_week}),
        ("Waste - Pending Submissions", "/waste/submissions/", {**page, "status": "pending"}),
        ("Waste - Stats", "/waste/stats/", {"group_by": "type"}),
        ("Credits - Transactions", "/credits/transactions/", page),
        ("Credits - Summary", "/credits/summary/", {"period": "30d"}),
        ("Credits - Ledger", "/credits/ledger/", page),
        ("Rewards - List", "/rewards/", page),
        ("Rewards - In Stock", "/rewards/", {**page, "in_stock": "true", "ordering": "popularity"}),
        ("Rewards - Categories", "/rewards/categories/", None),
        ("Rewards - Popular", "/rewards/popular/", None),
        ("Rewards - Featured", "/rewards/featured/", None),
        ("Rewards - Redemptions", "/redemptions/", {**page, "include_summary": "true"}),
        ("Reports - Leaderboard", "/leaderboard/", None),
        ("Reports - Leaderboard (Week)", "/leaderboard/", {"period": "week"}),
        ("Reports - Dashboard", "/dashboard/", None),
        ("Reports - Admin Dashboard", "/admin/dashboard/", None),
        ("Reports - Analytics (Today)", "/admin/analytics/", {"date_from": today, "date_to": today}),
        ("Reports - Analytics (30 days)", "/admin/analytics/", None),
    ]

    booth_id = tester.first_id("/booths/")
    if booth_id:
        plan += [
            ("Booths - Get by ID", f"/booths/{booth_id}/", None),
            ("Booths - Statistics", f"/booths/{booth_id}/statistics/", None),
            ("Booths - QR Card", f"/booths/{booth_id}/qr-card/", None),
        ]
    reward_id = tester.first_id("/rewards/")
    if reward_id:
        plan.append(("Rewards - Get by ID", f"/rewards/{reward_id}/", None))
    submission_id = tester.first_id("/waste/submissions/")
    if submission_id:
        plan.append(("Waste - Get Submission", f"/waste/submissions/{submission_id}/", None))
    return plan


def main():
    print("=" * 80)
    print("🧪 API PERFORMANCE TESTING TOOL")
    print("=" * 80)
    print(f"Target: {BASE_URL}\n")

    username = USERNAME or input("Enter username: ")
    password = PASSWORD or getpass.getpass("Enter password: ")

    tester = APITester(BASE_URL)
    if not tester.authenticate(username, password):
        print("❌ Authentication failed. Cannot proceed with tests.")
        sys.exit(1)

    print("\n🚀 Starting API Tests...\n")
    for name, endpoint, params in endpoint_plan(tester):
        tester.print_result(tester.test_endpoint(name, endpoint, params))

    tester.generate_report()
    if '--save' in sys.argv:
        tester.save_results()


if __name__ == "__main__":
    main()
