"""
Interactive setup wizard: pairs this phone with a family.

Two paths:
  new       generates a family id and a 4-digit pairing code, publishes the
            family document and saves the local profile. Give the pairing code
            to the family so they can connect their app.
  recover   after a reinstall: enter the pairing code and the elder's name as
            it was typed at setup; the matching family document is found and
            the local profile restored.

Usage:
    python -m wellcheck setup
    python -m wellcheck.scripts.setup   (direct invocation)
"""
import asyncio
import sys

from wellcheck.config import get_settings
from wellcheck.db.engine import get_engine
from wellcheck.db.state_store import StateStore
from wellcheck.recovery.pairing import generate_family_id, generate_pairing_code
from wellcheck.recovery.service import (
    AccountRecoveryError,
    AccountRecoveryService,
    RecoveryErrorType,
)
from wellcheck.remote.client import FirestoreClient, RemoteStoreError


def _pick_candidate(candidates):
    print("\nSeveral profiles match:")
    for i, c in enumerate(candidates, start=1):
        print(f"  {i}. {c.stored_name}  (score {c.match_score:.2f})")
    choice = input("Which one is this phone? [number, empty to cancel] ").strip()
    if not choice.isdigit() or not 1 <= int(choice) <= len(candidates):
        return None
    return candidates[int(choice) - 1]


async def _new_family(service: AccountRecoveryService) -> None:
    name = input("Elder's name (as the family knows it): ").strip()
    if not name:
        print("Error: name cannot be empty.")
        sys.exit(1)

    family_id = generate_family_id()
    pairing_code = generate_pairing_code()
    await service.create_family(family_id, pairing_code, name)

    print(f"\n✅ Paired. Family id: {family_id}")
    print(f"   Pairing code for the family app: {pairing_code}\n")


async def _recover(service: AccountRecoveryService) -> None:
    pairing_code = input("Pairing code: ").strip()
    name = input("Elder's name: ").strip()

    try:
        candidate = await service.recover(name, pairing_code)
    except AccountRecoveryError as exc:
        if exc.error_type != RecoveryErrorType.MULTIPLE_MATCHES:
            print(f"\n❌ {exc}")
            sys.exit(1)
        candidate = _pick_candidate(exc.candidates)
        if candidate is None:
            print("Recovery cancelled.")
            sys.exit(0)
        service.restore(candidate)

    print(f"\n✅ Restored profile for {candidate.stored_name} ({candidate.profile_id})\n")


async def _run(mode: str) -> None:
    settings = get_settings()
    store = StateStore(get_engine())
    remote = FirestoreClient.from_settings(settings)
    service = AccountRecoveryService(remote, store, settings)
    try:
        if mode == "recover":
            await _recover(service)
        else:
            await _new_family(service)
    except RemoteStoreError as exc:
        print(f"\n❌ Could not reach the family store: {exc}")
        sys.exit(1)
    finally:
        await remote.close()


def run_setup() -> None:
    print("\n👵 wellcheck — Device Setup\n")

    existing = StateStore(get_engine()).get_profile()
    if existing is not None and existing.setup_complete:
        print(f"⚠️  This phone is already paired with {existing.elderly_name} ({existing.family_id}).")
        overwrite = input("Pair it again? [y/N] ").strip().lower()
        if overwrite != "y":
            print("Setup cancelled. Existing pairing unchanged.")
            sys.exit(0)

    mode = input("Set up a [n]ew family or [r]ecover an existing one? [n/r] ").strip().lower()
    asyncio.run(_run("recover" if mode.startswith("r") else "new"))


if __name__ == "__main__":
    run_setup()
