import time
import subprocess
import tempfile
import httpx
import sys
import os
import signal

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"


def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False


def start_server(data_dir):
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "parceltrack.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env={**os.environ, "DATA_DIR": data_dir, "LOG_LEVEL": "DEBUG"}
    )


def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


def run_verification(data_dir):
    # 1. Start Server (First Run)
    print(f"\n--- [Step 1] Starting Server (Initial, data in {data_dir}) ---")
    proc = start_server(data_dir)

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        # 2. Courier + two deliveries, one of them completed and rated
        print("\n--- [Step 2] Creating Records (Persistence Test) ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/admin/couriers", json={"name": "Dan", "id": "C1", "pin": "1234"})
        if resp.status_code != 201:
            raise Exception(f"Courier creation failed: {resp.status_code} {resp.text}")

        member = {"name": "Alice", "id": "M1001", "role": "Student"}
        delivery = {
            "member": member,
            "receiver_name": "Bob",
            "receiver_phone": "555-0100",
            "receiver_address": "Block C",
            "item": "Lab notes",
            "priority": "HIGH",
        }
        for _ in range(2):
            resp = httpx.post(f"{BASE_URL}{API_PREFIX}/member/deliveries", json=delivery)
            if resp.status_code != 201:
                raise Exception(f"Delivery request failed: {resp.status_code} {resp.text}")

        courier_url = f"{BASE_URL}{API_PREFIX}/courier/couriers/C1/deliveries/1"
        httpx.post(f"{courier_url}/out-for-delivery")
        httpx.post(f"{courier_url}/delivered")
        resp = httpx.post(
            f"{BASE_URL}{API_PREFIX}/member/deliveries/1/confirm",
            json={"member": member, "rating": 5, "review": "Quick"}
        )
        if resp.status_code == 200:
            print("✅ Delivery 1 completed and rated")
        else:
            raise Exception(f"Confirmation failed: {resp.status_code} {resp.text}")

    finally:
        print("\n--- [Step 3] Stopping Server ---")
        stop_server(proc)

    time.sleep(2)  # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = start_server(data_dir)

    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        print("\n--- [Step 5] Checking Records (Post-Restart) ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/admin/deliveries")
        deliveries = {d["id"]: d for d in resp.json()["deliveries"]}
        first, second = deliveries.get(1), deliveries.get(2)
        if first and first["status"] == "COMPLETED" and first["rating"] == 5:
            print("✅ Completed delivery persisted")
        else:
            raise Exception(f"Delivery 1 not restored: {first}")
        if second and second["status"] == "ASSIGNED" and second["assigned_courier_id"] == "C1":
            print("✅ Backlogged delivery re-dispatched")
        else:
            raise Exception(f"Delivery 2 not restored: {second}")
        if first["sender_name"] == "Unknown":
            print("✅ Sender restored as placeholder")

        print("\n--- [Step 6] Verifying Courier Rating ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/courier/couriers/C1/rating")
        if resp.status_code == 200 and resp.json()["ratings_count"] == 1:
            print("✅ Rating history rebuilt")
            print(resp.json())
        else:
            print(f"❌ Rating Check Failed: {resp.status_code} {resp.text}")

        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/member/deliveries", json=delivery)
        if resp.json().get("id") == 3:
            print("✅ Delivery IDs continue after restart")
        else:
            print(f"❌ Unexpected next ID: {resp.text}")

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop_server(proc2)


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        run_verification(tmp)
