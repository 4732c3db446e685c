"""
PORTFOLIO CHAT TEST SCRIPT - Interactive client
===============================================

PURPOSE:
Command-line interface for talking to a running Portfolio Chat server, the
same way the website widget does: the client keeps the conversation history
and sends it with every message (the server stores nothing).

USAGE:
    python test.py [base_url]

    Make sure the server is running first: python run.py

COMMANDS:
    /history - Show the conversation so far
    /clear   - Forget the conversation and start fresh
    /quit or /exit - Exit
"""

import sys

import requests


# -----------------------------------------------------------------------------
# CONFIGURATION
# -----------------------------------------------------------------------------
# API base URL; pass another one as the first argument if needed.
BASE_URL = sys.argv[1].rstrip("/") if len(sys.argv) > 1 else "http://localhost:3000"
# Client-side conversation history: list of {"role": ..., "content": ...}.
HISTORY = []


# -----------------------------------------------------------------------------
# UI HELPERS
# -----------------------------------------------------------------------------

def print_header():
    print("\n" + "=" * 60)
    print("Portfolio Chat")
    print("=" * 60)
    print("\nCommands:")
    print("  /history - See the conversation")
    print("  /clear - Start over")
    print("  /quit - Exit")
    print("=" * 60 + "\n")


def get_user_input():
    try:
        return input("\nYou: ").strip()
    except (KeyboardInterrupt, EOFError):
        return None


# -----------------------------------------------------------------------------
# API CALLS
# -----------------------------------------------------------------------------

def send_message(message):
    """
    POST the message plus the history so far to /api/chat.

    Returns:
        (ok, text): ok is True when text is the assistant's reply, False when
        text is an error description for the user.
    """
    try:
        response = requests.post(
            f"{BASE_URL}/api/chat",
            json={"message": message, "conversationHistory": HISTORY},
            timeout=45,  # server bounds the provider call at 30s
        )
    except requests.exceptions.ConnectionError:
        return False, "Cannot connect to backend. Start it with: python run.py"
    except requests.exceptions.Timeout:
        return False, "Request timed out."

    try:
        data = response.json()
    except ValueError:
        return False, f"Error: {response.status_code} - {response.text}"

    if response.status_code == 200:
        return True, data.get("response", "")

    error = data.get("error", response.text)
    code = data.get("code")
    return False, f"Error {response.status_code}: {error}" + (f" ({code})" if code else "")


def check_health():
    try:
        response = requests.get(f"{BASE_URL}/api/health", timeout=5)
        return response.status_code == 200 and response.json().get("status") == "ok"
    except requests.exceptions.RequestException:
        return False


def format_history():
    if not HISTORY:
        return "No messages yet"
    lines = [f"\nConversation ({len(HISTORY)} messages):", "-" * 60]
    for i, turn in enumerate(HISTORY, 1):
        who = "You" if turn["role"] == "user" else "Assistant"
        lines.append(f"{i}. {who}: {turn['content']}")
    lines.append("-" * 60)
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# MAIN LOOP
# -----------------------------------------------------------------------------

def main():
    print_header()

    if not check_health():
        print(f"Warning: {BASE_URL}/api/health did not answer ok; is the server running?")

    while True:
        user_input = get_user_input()
        if user_input is None or user_input in ("/quit", "/exit"):
            print("\nGoodbye!")
            break

        if not user_input:
            continue

        if user_input == "/history":
            print(format_history())
            continue

        if user_input == "/clear":
            HISTORY.clear()
            print("\nConversation cleared.")
            continue

        if user_input.startswith("/"):
            print(f"Unknown command: {user_input}")
            continue

        ok, text = send_message(user_input)
        print(f"Assistant: {text}" if ok else text)

        # Only successful exchanges become history, so a failed call can be retried cleanly.
        if ok:
            HISTORY.append({"role": "user", "content": user_input})
            HISTORY.append({"role": "assistant", "content": text})


# Run the interactive loop when this file is executed (python test.py).
if __name__ == "__main__":
    main()
