#!/usr/bin/env python3
"""
Manual smoke client for a running capture service.

Generates synthetic recordings (a mono 16 kHz tone and a stereo 44.1 kHz
tone), submits them to POST /capture as a multipart upload and as a raw
audio body, and prints the responses.

Credentials come from the environment:
    CAPTURE_URL (default http://localhost:3000)
    CAPTURE_CLIENT_ID
    CAPTURE_API_KEY
"""
import io
import os
import sys
import wave
import httpx
import numpy as np

# Configuration
SERVER_URL = os.environ.get("CAPTURE_URL", "http://localhost:3000")
CLIENT_ID = os.environ.get("CAPTURE_CLIENT_ID", "test-client")
API_KEY = os.environ.get("CAPTURE_API_KEY", "")
DURATION = 1  # seconds


def generate_tone(sample_rate=16000, channels=1, frequency=440, duration=DURATION):
    """Generate a sine tone as WAV bytes (same tone on every channel)."""
    t = np.arange(int(sample_rate * duration)) / sample_rate
    mono = (np.sin(2 * np.pi * frequency * t) * 10000).astype(np.int16)
    samples = np.repeat(mono, channels)

    output = io.BytesIO()
    with wave.open(output, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(samples.tobytes())
    return output.getvalue()


def check_health(client):
    print("\n[1/3] Checking server health...")
    response = client.get("/health")
    if response.status_code != 200:
        print(f"✗ Server returned status {response.status_code}")
        return False
    data = response.json()
    print(f"✓ Server is healthy (version {data.get('version')})")
    return True


def submit(client, description, audio, raw=False):
    """Submit one recording and report the outcome."""
    print(f"\n{'=' * 70}")
    print(f"Testing: {description} ({len(audio)} bytes, {'raw body' if raw else 'multipart'})")
    print(f"{'=' * 70}")

    if raw:
        response = client.post(
            "/capture",
            content=audio,
            headers={
                "Content-Type": "audio/wav",
                "Authorization": f"Bearer {API_KEY}",
                "X-Client-Id": CLIENT_ID,
            }
        )
    else:
        response = client.post(
            "/capture",
            files={"audio": ("recording.wav", audio, "audio/wav")},
            data={"clientId": CLIENT_ID, "apiKey": API_KEY}
        )

    data = response.json()
    print(f"  HTTP {response.status_code}, request id {response.headers.get('X-Request-ID')}")
    print(f"  Response: {data}")

    if response.status_code == 429:
        print(f"  Retry after {response.headers.get('Retry-After')}s")
    passed = response.status_code == 200 and data.get("success") is True
    print(f"\n{'✓ Test PASSED' if passed else '✗ Test FAILED'}")
    return passed


def main():
    print("\n" + "=" * 70)
    print("Voice Capture Service - Smoke Test Client")
    print("=" * 70)
    print(f"Server: {SERVER_URL}")
    print(f"Client: {CLIENT_ID}")

    if not API_KEY:
        print("✗ CAPTURE_API_KEY is not set")
        return False

    # Transcription and forwarding retries can take a while
    with httpx.Client(base_url=SERVER_URL, timeout=120) as client:
        try:
            if not check_health(client):
                return False
        except httpx.ConnectError:
            print(f"✗ Could not connect to server at {SERVER_URL}")
            print("  Make sure the backend is running:")
            print("  cd backend && python -m uvicorn capture.main:app --reload --port 3000")
            return False

        print("\n[2/3] Submitting recordings...")
        results = [
            ("16 kHz mono tone", submit(client, "16 kHz mono tone", generate_tone())),
            ("44.1 kHz stereo tone", submit(client, "44.1 kHz stereo tone", generate_tone(44100, 2))),
            ("16 kHz raw body", submit(client, "16 kHz raw body", generate_tone(), raw=True)),
        ]

    print("\n[3/3] Test Summary")
    print("=" * 70)
    for description, passed in results:
        print(f"{'✓ PASS' if passed else '✗ FAIL'}: {description}")
    passed_count = sum(1 for _, passed in results if passed)
    print(f"\nTotal: {passed_count}/{len(results)} tests passed")
    return passed_count == len(results)


if __name__ == "__main__":
    try:
        success = main()
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n\nExiting...")
        sys.exit(1)
