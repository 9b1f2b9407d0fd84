import os
import csv
import sys
import time
import requests

# ================= CONFIGURATION =================
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
# One URL per line; lines starting with '#' are ignored
URL_FILE = os.path.join(BASE_DIR, "testcase", "urls.txt")

API_URL = "http://localhost:8000/api/v1/analyze/batch"
OUTPUT_CSV = "url_test_results.csv"
CHUNK_SIZE = 50
# =================================================

def load_urls(file_path):
    if not os.path.exists(file_path):
        print(f"❌ File not found: {file_path}")
        return []
    with open(file_path, 'r', encoding='utf-8') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]

def analyze_chunk(urls):
    """Sends one chunk of URLs to the batch endpoint."""
    payload = {"items": [{"type": "url", "url": u} for u in urls]}
    try:
        start_time = time.time()
        response = requests.post(API_URL, json=payload, timeout=120)
        duration = time.time() - start_time
    except requests.RequestException as e:
        print(f"❌ Chunk failed: {e}")
        return [{'url': u, 'status': 'CONNECTION_ERROR'} for u in urls]

    if response.status_code != 200:
        print(f"⚠️ API Error: {response.status_code} {response.text[:200]}")
        return [{'url': u, 'status': 'API_ERROR'} for u in urls]

    rows = []
    for url, item in zip(urls, response.json().get('results', [])):
        if 'error' in item:
            print(f"⚠️ {url[:40]:<40} | {item['error']}")
            rows.append({'url': url, 'status': 'ITEM_ERROR'})
            continue
        verdict = item.get('result', 'unknown')
        icon = '🚨' if verdict == 'phishing' else '⚠️' if verdict in ('suspicious', 'unknown') else '✅'
        print(f"{icon} {url[:40]:<40} | {verdict:<10} ({item.get('confidence')}%)")
        rows.append({
            'url': url,
            'verdict': verdict,
            'confidence': item.get('confidence'),
            'method': item.get('analysisDetails', {}).get('method'),
            'status': 'SUCCESS',
        })
    print(f"⏱️ {len(urls)} URLs in {duration:.2f}s")
    return rows

def main():
    url_file = sys.argv[1] if len(sys.argv) > 1 else URL_FILE

    print("\n" + "="*50)
    print("🚀 URL BATCH TESTER")
    print("="*50)
    print(f"📂 Input: {url_file}")

    urls = load_urls(url_file)
    if not urls:
        print("❌ No URLs to analyze!")
        return

    print(f"📦 Found {len(urls)} URLs.")
    results = []
    for i in range(0, len(urls), CHUNK_SIZE):
        results.extend(analyze_chunk(urls[i:i + CHUNK_SIZE]))

    with open(OUTPUT_CSV, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=['url', 'verdict', 'confidence', 'method', 'status'])
        writer.writeheader()
        writer.writerows(results)

    successful_runs = [r for r in results if r.get('status') == 'SUCCESS']
    if successful_runs:
        counts = {}
        for r in successful_runs:
            counts[r['verdict']] = counts.get(r['verdict'], 0) + 1

        print("\n" + "="*50)
        print("📊 VERDICT REPORT")
        print("="*50)
        for verdict, count in sorted(counts.items()):
            print(f"{verdict:<12} {count:>5} ({count / len(successful_runs) * 100:.1f}%)")
        print(f"💾 Saved to {OUTPUT_CSV}")
        print("="*50)

if __name__ == "__main__":
    main()
