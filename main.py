"""Entry point: resolve an ENS policy, prove a payment against it, or verify a proof.

    python main.py resolve agent.eth
    python main.py prove agent.eth 50 [--action payment]
    python main.py verify proof.json

``--record KEY=VALUE`` (repeatable) replaces ENS with static records for the
given name, for offline runs.  Output is JSON on stdout; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any

from core.artifacts import VerificationKeyError
from core.compliance import DEFAULT_ACTION, ComplianceService
from core.config import AppConfig, load_config
from core.policy import ComplianceViolation, PolicyError, canonical_number
from core.policy_resolver import PolicyResolver, ResolutionError
from core.prover import ProofGenerationError, ProofGenerator
from core.verifier import ProofVerifier
from tools.ens_tool import InvalidEnsName, StaticTextRecordSource, TextRecordSource

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
    stream=sys.stderr,
)

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_INVALID_PROOF = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ENS spending-policy compliance proofs")
    parser.add_argument(
        "--record",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="static text record for NAME instead of an ENS lookup (repeatable)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="never fall back to mock proofs (overrides ZK_STRICT)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    resolve = sub.add_parser("resolve", help="print the policy published by NAME")
    resolve.add_argument("name")

    prove = sub.add_parser("prove", help="prove AMOUNT complies with NAME's policy")
    prove.add_argument("name")
    prove.add_argument("amount")
    prove.add_argument("--action", default=DEFAULT_ACTION)

    verify = sub.add_parser("verify", help="verify a proof JSON file ('-' for stdin)")
    verify.add_argument("proof_json")

    return parser.parse_args(argv)


def parse_records(pairs: list[str]) -> dict[str, str]:
    records: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"--record expects KEY=VALUE, got {pair!r}")
        records[key.strip()] = value
    return records


def _emit(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2))


def _read_proof(path: str) -> Any:
    text = sys.stdin.read() if path == "-" else Path(path).read_text()
    return json.loads(text)


def _policy_dict(policy) -> dict[str, Any]:
    return {
        "sourceName": policy.source_name,
        "maxSpendUSDC": canonical_number(policy.max_spend),
        "allowedActions": list(policy.allowed_actions),
        "policyVersion": policy.version,
        "fingerprint": policy.fingerprint,
        "fetchedAt": policy.fetched_at.isoformat(),
    }


async def run(args: argparse.Namespace, config: AppConfig, source: TextRecordSource | None = None) -> int:
    """Execute one command and return the process exit code."""
    if args.command == "verify":
        verifier = ProofVerifier.from_config(config.zk)
        result = await verifier.verify_with_signals(_read_proof(args.proof_json))
        _emit(result.to_dict())
        return 0 if result.valid else EXIT_INVALID_PROOF

    resolver = PolicyResolver.from_config(config.ens, source)
    if args.command == "resolve":
        policy = await resolver.resolve(args.name)
        _emit(_policy_dict(policy))
        return 0

    service = ComplianceService(resolver, ProofGenerator.from_config(config.zk))
    response = await service.prove_payment(args.name, args.amount, args.action)
    _emit(response.to_dict())
    return 0


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        config = load_config()
        records = parse_records(args.record)
    except (EnvironmentError, ValueError) as exc:
        logger.error("configuration error: %s", exc)
        sys.exit(EXIT_ERROR)

    if args.strict:
        config = dataclasses.replace(config, zk=dataclasses.replace(config.zk, strict=True))

    source = None
    if records:
        if args.command == "verify":
            logger.warning("--record is ignored by verify")
        else:
            logger.info("using static records for %s (no ENS lookup)", args.name)
            try:
                source = StaticTextRecordSource({args.name: records})
            except InvalidEnsName as exc:
                logger.error("configuration error: %s", exc)
                sys.exit(EXIT_ERROR)

    logger.info("starting %s (strict=%s rpc=%s)", args.command, config.zk.strict, config.ens.rpc_url)
    try:
        code = asyncio.run(run(args, config, source))
    except (PolicyError, ComplianceViolation) as exc:
        logger.error("%s: %s", exc.code.value, exc)
        _emit({"error": str(exc), "code": exc.code.value})
        sys.exit(EXIT_ERROR)
    except (
        ResolutionError,
        ProofGenerationError,
        VerificationKeyError,
        OSError,
        ValueError,
    ) as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        _emit({"error": str(exc)})
        sys.exit(EXIT_ERROR)

    sys.exit(code)


if __name__ == "__main__":
    main()
