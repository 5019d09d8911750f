"""SD-JWT container: issuance, wire format and holder presentations.

An SD-JWT travels as ``<issuer-jwt>~<disclosure1>~...~<disclosureN>~<kb-jwt>``
where the final segment is empty when no key-binding token is attached.

CLI Usage:
    python -m sdjwt.sd_jwt --help
    python -m sdjwt.sd_jwt issue --claims claims.json --policy policy.json --key key.jwk
    python -m sdjwt.sd_jwt present --sd-jwt token.txt --disclose given_name
    python -m sdjwt.sd_jwt verify --sd-jwt token.txt --public-key key.jwk --algorithm ES256
    python -m sdjwt.sd_jwt decode --sd-jwt token.txt
"""

import argparse
import json
import sys
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sdjwt.blinder import BlindPolicy, SdJwtBlinder, policy_from_dict
from sdjwt.digests import ARRAY_DIGEST_KEY, SD_CLAIM, HashAlgorithm, resolve_hash_alg
from sdjwt.disclosure import ArrayDisclosure, Disclosure, ObjectDisclosure, parse_disclosure
from sdjwt.errors import MalformedStructureError, SdJwtError
from sdjwt.kb_jwt import create_kb_jwt
from sdjwt.keys import PrivateKey
from sdjwt.signer import Jwt, build_header

SD_JWT_SEPARATOR = "~"
SD_JWT_TYP = "sd+jwt"


@dataclass(frozen=True)
class SdJwt:
    """An issuer-signed JWT, its disclosures and an optional key-binding JWT.

    Containers are never mutated; :meth:`present` derives a new one.
    """

    issuer_jwt: Jwt
    disclosures: tuple[Disclosure, ...] = ()
    key_binding_jwt: Jwt | None = None

    def __post_init__(self):
        object.__setattr__(self, "disclosures", tuple(self.disclosures))

    @property
    def claims(self) -> dict[str, Any]:
        """The issuer payload as signed (digests, not plaintext)."""
        return self.issuer_jwt.claims

    @property
    def hash_alg(self) -> HashAlgorithm:
        return resolve_hash_alg(self.claims)

    def serialize_without_kb(self) -> str:
        """Serialize up to and including the ``~`` before the key-binding segment."""
        parts = [self.issuer_jwt.serialize()]
        parts.extend(d.serialize() for d in self.disclosures)
        return SD_JWT_SEPARATOR.join(parts) + SD_JWT_SEPARATOR

    def serialize(self) -> str:
        """Serialize to the ``~``-delimited wire format.

        Raises:
            TokenStateError: If the issuer or key-binding JWT is unsigned.
        """
        kb = self.key_binding_jwt.serialize() if self.key_binding_jwt else ""
        return self.serialize_without_kb() + kb

    @classmethod
    def parse(cls, value: str) -> "SdJwt":
        """Parse the wire format without verifying any signature.

        Raises:
            MalformedStructureError: If there is no ``~`` or a JWT cannot be decoded.
            MalformedDisclosureError: If a disclosure segment is invalid.
        """
        parts = value.strip().split(SD_JWT_SEPARATOR)
        if len(parts) < 2:
            raise MalformedStructureError("Invalid SD-JWT format: missing separator")

        issuer_jwt = Jwt.parse(parts[0])
        disclosures = tuple(parse_disclosure(p) for p in parts[1:-1])
        key_binding_jwt = Jwt.parse(parts[-1]) if parts[-1] else None
        return cls(issuer_jwt, disclosures, key_binding_jwt)

    def present(
        self,
        disclosures: Iterable[Disclosure],
        *,
        holder_private_key: PrivateKey | None = None,
        nonce: str | None = None,
        audience: str | None = None,
        iat: int | None = None,
        kid: str | None = None,
    ) -> "SdJwt":
        """Derive a presentation revealing only ``disclosures``.

        Nested disclosures are only reachable when the disclosure that
        contains their digest is presented too.

        Args:
            disclosures: Subset of this container's disclosures to reveal.
            holder_private_key: If given, a fresh KB-JWT is attached.
            nonce: Verifier nonce (required with ``holder_private_key``).
            audience: Verifier identifier (required with ``holder_private_key``).
            iat: KB-JWT issued-at time. Default: now.
            kid: KB-JWT key ID.

        Raises:
            SdJwtError: If a disclosure does not belong to this container.
            ValueError: If a holder key is given without nonce and audience.
        """
        own = {d.raw for d in self.disclosures}
        chosen = tuple(disclosures)
        for disclosure in chosen:
            if disclosure.raw not in own:
                raise SdJwtError(
                    f"Disclosure {disclosure.raw[:16]}... is not part of this SD-JWT"
                )

        presentation = SdJwt(self.issuer_jwt, chosen)
        if holder_private_key is None:
            return presentation

        if nonce is None or audience is None:
            raise ValueError("nonce and audience are required for key binding")
        kb_jwt = create_kb_jwt(
            presentation,
            holder_private_key,
            nonce=nonce,
            audience=audience,
            iat=iat,
            kid=kid,
        )
        return SdJwt(self.issuer_jwt, chosen, kb_jwt)

    def with_parent_disclosures(self, disclosures: Iterable[Disclosure]) -> list[Disclosure]:
        """Extend ``disclosures`` with every disclosure that encloses one of them.

        Returns:
            The selection plus its ancestors, in this container's order.
        """
        parent_of: dict[str, Disclosure] = {}
        for candidate in self.disclosures:
            for digest in _referenced_digests(candidate.claim_value):
                parent_of[digest] = candidate

        selected = {d.raw for d in disclosures}
        pending = [d for d in self.disclosures if d.raw in selected]
        while pending:
            parent = parent_of.get(pending.pop().digest(self.hash_alg))
            if parent is not None and parent.raw not in selected:
                selected.add(parent.raw)
                pending.append(parent)
        return [d for d in self.disclosures if d.raw in selected]


def issue_sd_jwt(
    claims: dict,
    policy: BlindPolicy,
    private_key: PrivateKey,
    *,
    alg: str | None = None,
    kid: str | None = None,
    typ: str = SD_JWT_TYP,
    blinder: SdJwtBlinder | None = None,
) -> SdJwt:
    """Blind ``claims`` under ``policy`` and sign the result.

    Args:
        claims: Plain claim set. Add ``cnf`` here to bind a holder key.
        policy: Blind policy; claims it does not name stay visible.
        private_key: Issuer's private key (P-256 or Ed25519).
        alg: Algorithm override. Default: ES256 for P-256, EdDSA for Ed25519.
        kid: Key ID for the JOSE header.
        typ: JOSE ``typ`` header.
        blinder: Blinder to use. Default: sha-256 with secure randomness.

    Returns:
        The issued SD-JWT carrying every disclosure.
    """
    blinded = (blinder or SdJwtBlinder()).blind(claims, policy)
    issuer_jwt = Jwt(build_header(typ, kid=kid), blinded.claims).sign(private_key, alg)
    return SdJwt(issuer_jwt, tuple(blinded.disclosures))


def select_disclosures(
    disclosures: Iterable[Disclosure], claim_names: Iterable[str]
) -> list[Disclosure]:
    """Pick the object-property disclosures for ``claim_names``, at any depth.

    A nested disclosure is matched by name alone. Its claim only appears after
    unblinding when the disclosure containing its digest is presented too; use
    :meth:`SdJwt.with_parent_disclosures` to add those.
    """
    names = set(claim_names)
    return [
        d for d in disclosures if isinstance(d, ObjectDisclosure) and d.claim_name in names
    ]


def select_array_elements(disclosures: Iterable[Disclosure], values: list) -> list[Disclosure]:
    """Pick the array-element disclosures whose value is in ``values``."""
    return [d for d in disclosures if isinstance(d, ArrayDisclosure) and d.claim_value in values]


def _referenced_digests(value: Any) -> Iterator[str]:
    """Yield every ``_sd`` digest and ``...`` placeholder digest inside ``value``."""
    if isinstance(value, dict):
        digests = value.get(SD_CLAIM)
        if isinstance(digests, list):
            yield from (digest for digest in digests if isinstance(digest, str))
        placeholder = value.get(ARRAY_DIGEST_KEY)
        if isinstance(placeholder, str):
            yield placeholder
        for key, item in value.items():
            if key != SD_CLAIM:
                yield from _referenced_digests(item)
    elif isinstance(value, list):
        for item in value:
            yield from _referenced_digests(item)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _read_token(path: str) -> str:
    if path == "-":
        return sys.stdin.read().strip()
    return Path(path).read_text().strip()


def _write_output(text: str, output: str | None, what: str) -> None:
    if output:
        Path(output).write_text(text)
        print(f"{what} written to {output}", file=sys.stderr)
    else:
        print(text)


def main():
    """CLI entry point for SD-JWT operations."""
    from sdjwt._crypto import load_private_key, load_public_key
    from sdjwt.keys import to_public_jwk
    from sdjwt.unblinder import unblind_with_report
    from sdjwt.verifier import HolderBindingOption, VerificationOptions, verify_sd_jwt

    parser = argparse.ArgumentParser(
        prog="sdjwt.sd_jwt",
        description="SD-JWT CLI - Issue, present, verify and decode SD-JWTs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Issue an SD-JWT, hiding given_name and the street of the address
  python -m sdjwt.sd_jwt issue --claims claims.json --policy policy.json --key issuer.jwk

  # Present only given_name, bound to the holder key
  python -m sdjwt.sd_jwt present --sd-jwt token.txt --disclose given_name \\
      --holder-key holder.jwk --nonce abc --audience https://verifier.example

  # Verify a presentation
  python -m sdjwt.sd_jwt verify --sd-jwt presentation.txt --public-key issuer.pub.jwk \\
      --algorithm ES256 --require-holder-binding --nonce abc --audience https://verifier.example
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # issue subcommand
    issue_parser = subparsers.add_parser(
        "issue",
        help="Issue an SD-JWT with selective disclosure",
        description="Blind a claim set with a policy and sign it.",
    )
    issue_parser.add_argument("--claims", required=True, help="JSON file with claims")
    issue_parser.add_argument(
        "--policy",
        required=True,
        help='JSON file with blind policy, e.g. {"given_name": "flat", "address": {"street": "flat"}}',
    )
    issue_parser.add_argument("--key", "-k", required=True, help="Issuer private key (JWK file)")
    issue_parser.add_argument("--kid", help="Key ID for JOSE header")
    issue_parser.add_argument(
        "--holder-key", help="Holder public key (JWK file) to bind via cnf.jwk"
    )
    issue_parser.add_argument(
        "--hash",
        choices=[h.iana_name for h in HashAlgorithm],
        default=HashAlgorithm.SHA_256.iana_name,
        help="Digest hash algorithm. Default: sha-256",
    )
    issue_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    # present subcommand
    present_parser = subparsers.add_parser(
        "present",
        help="Derive a presentation with a subset of disclosures",
        description="Keep only the named disclosures and optionally attach a KB-JWT.",
    )
    present_parser.add_argument("--sd-jwt", required=True, help="SD-JWT file or '-' for stdin")
    present_parser.add_argument(
        "--disclose",
        action="append",
        default=[],
        help="Claim name to disclose (can be repeated); enclosing claims are added",
    )
    present_parser.add_argument("--holder-key", help="Holder private key (JWK file)")
    present_parser.add_argument("--nonce", help="Verifier-provided nonce")
    present_parser.add_argument("--audience", help="Verifier identifier")
    present_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    # verify subcommand
    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify an SD-JWT and show disclosed claims",
        description="Verify signatures and holder binding, then print the disclosed claims.",
    )
    verify_parser.add_argument("--sd-jwt", required=True, help="SD-JWT file or '-' for stdin")
    verify_parser.add_argument(
        "--public-key", required=True, help="Issuer public key (JWK file)"
    )
    verify_parser.add_argument(
        "--algorithm",
        "-a",
        action="append",
        required=True,
        help="Allowed signature algorithm (can be repeated)",
    )
    verify_parser.add_argument(
        "--require-holder-binding", action="store_true", help="Require a valid KB-JWT"
    )
    verify_parser.add_argument("--nonce", help="Expected KB-JWT nonce")
    verify_parser.add_argument("--audience", help="Expected KB-JWT audience")
    verify_parser.add_argument(
        "--holder-public-key", help="Holder public key (JWK file) for the KB-JWT"
    )

    # decode subcommand
    decode_parser = subparsers.add_parser(
        "decode",
        help="Decode an SD-JWT without verifying it",
        description="Print header, payload, disclosures and the unblinded claims.",
    )
    decode_parser.add_argument("--sd-jwt", required=True, help="SD-JWT file or '-' for stdin")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        if args.command == "issue":
            claims = json.loads(Path(args.claims).read_text())
            policy = policy_from_dict(json.loads(Path(args.policy).read_text()))
            private_key = load_private_key(args.key)
            if args.holder_key:
                holder_public = load_public_key(args.holder_key)
                claims["cnf"] = {"jwk": to_public_jwk(holder_public)}
            blinder = SdJwtBlinder(hash_alg=HashAlgorithm(args.hash))
            sd_jwt = issue_sd_jwt(claims, policy, private_key, kid=args.kid, blinder=blinder)
            _write_output(sd_jwt.serialize(), args.output, "SD-JWT")

        elif args.command == "present":
            sd_jwt = SdJwt.parse(_read_token(args.sd_jwt))
            chosen = sd_jwt.with_parent_disclosures(
                select_disclosures(sd_jwt.disclosures, args.disclose)
            )
            holder_key = load_private_key(args.holder_key) if args.holder_key else None
            presentation = sd_jwt.present(
                chosen,
                holder_private_key=holder_key,
                nonce=args.nonce,
                audience=args.audience,
            )
            _write_output(presentation.serialize(), args.output, "Presentation")

        elif args.command == "verify":
            options = VerificationOptions(
                issuer_public_key=load_public_key(args.public_key),
                supported_algorithms=args.algorithm,
                holder_binding=(
                    HolderBindingOption.VERIFY
                    if args.require_holder_binding
                    else HolderBindingOption.SKIP
                ),
                expected_nonce=args.nonce,
                expected_audience=args.audience,
                key_binding_public_key=(
                    load_public_key(args.holder_public_key)
                    if args.holder_public_key
                    else None
                ),
            )
            claims = verify_sd_jwt(_read_token(args.sd_jwt), options)
            print(json.dumps(claims, indent=2, ensure_ascii=False))

        elif args.command == "decode":
            sd_jwt = SdJwt.parse(_read_token(args.sd_jwt))
            result = unblind_with_report(sd_jwt)
            decoded = {
                "header": sd_jwt.issuer_jwt.header,
                "payload": sd_jwt.claims,
                "disclosures": [
                    {"raw": d.raw, "digest": d.digest(sd_jwt.hash_alg), "value": d.claim_value}
                    | ({"name": d.claim_name} if isinstance(d, ObjectDisclosure) else {})
                    for d in sd_jwt.disclosures
                ],
                "claims": result.claims,
                "undisclosed_digests": result.undisclosed_digest_count,
                "unused_disclosures": result.unused_disclosure_count,
            }
            if sd_jwt.key_binding_jwt is not None:
                decoded["key_binding"] = {
                    "header": sd_jwt.key_binding_jwt.header,
                    "payload": sd_jwt.key_binding_jwt.claims,
                }
            print(json.dumps(decoded, indent=2, ensure_ascii=False))

    except ValueError as e:
        print(f"{args.command.capitalize()} failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
