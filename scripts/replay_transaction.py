"""
Replay a mail transaction through the TLS enforcement filter without an MTA.

Example:
    python scripts/replay_transaction.py texthash:./tls_policy \
        --rcpt '<s:alice@good.com>' --rcpt '<bob@plain.com>' \
        --header 'To: s:alice@good.com, bob@plain.com' --no-strict
"""

import argparse
import sys
from pathlib import Path

backend_path = Path(__file__).resolve().parent.parent / "backend"
sys.path.insert(0, str(backend_path))

from policy_engine.decision import DecisionEngine, FilterOptions  # noqa: E402
from policy_engine.rules import PolicyEngine  # noqa: E402
from policy_store import PolicyStore, PolicyStoreError  # noqa: E402
from session.dispatcher import TransactionDispatcher  # noqa: E402


class PrintingSink:
    """Prints every mutation instead of applying it."""

    def add_header(self, name, value):
        print(f"  add header     {name}: {value}")

    def change_header(self, name, index, value):
        print(f"  change header  {name}[{index}]: {value}")

    def delete_recipient(self, token):
        print(f"  delete rcpt    {token}")

    def add_recipient(self, token):
        print(f"  add rcpt       {token}")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("policy_map", help="map specifier, e.g. texthash:/etc/postfix/tls_policy")
    parser.add_argument("--sender", default="<sender@example.org>")
    parser.add_argument("--rcpt", action="append", default=[], help="envelope recipient (repeatable)")
    parser.add_argument("--header", action="append", default=[], help="'Name: value' (repeatable)")
    parser.add_argument("--no-strict", dest="strict", action="store_false")
    parser.add_argument("--unified", action="store_true")
    parser.add_argument("--info-url", default="https://example.org/enforced-tls")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    store = PolicyStore(args.policy_map)
    try:
        store.load()
    except PolicyStoreError as e:
        print(f"Cannot load policy map: {e}", file=sys.stderr)
        return 2

    engine = DecisionEngine(
        PolicyEngine(store),
        FilterOptions(strict=args.strict, unified=args.unified, info_url=args.info_url),
    )
    dispatcher = TransactionDispatcher(engine)
    dispatcher.on_connect("localhost", 25, "127.0.0.1")
    dispatcher.on_sender(args.sender)
    for rcpt in args.rcpt:
        dispatcher.on_recipient(rcpt)
    for header in args.header:
        name, _, value = header.partition(":")
        dispatcher.on_header(name.strip(), value.strip())

    print("Mutations:")
    result = dispatcher.on_end_of_data(PrintingSink())
    dispatcher.on_close()

    if result.rejected:
        print(f"Verdict: REJECT {result.reject_code or ''} {result.reject_enhanced_code or ''}".rstrip())
        if result.reject_text:
            print(f"  {result.reject_text}")
        return 1

    print("Verdict: CONTINUE")
    return 0


if __name__ == "__main__":
    sys.exit(main())
