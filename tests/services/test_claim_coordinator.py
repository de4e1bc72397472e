import pytest
from sqlalchemy.exc import OperationalError

from app.core.config import settings
from app.core.errors import (
    CampaignStateError,
    ClaimPersistenceError,
    MintError,
    NonceVerificationError,
    NotEligibleError,
)
from app.models.auth import PURPOSE_CLAIM, PURPOSE_LOGIN, AuthNonce
from app.models.claim import (
    INTENT_COMMITTED,
    INTENT_FAILED,
    INTENT_ORPHANED,
    Claim,
    ClaimIntent,
)
from app.services import claims
from app.services.campaigns import transition_status
from app.services.nonces import issue_nonce
from tests.helpers import FakeMinter, SigningWallet


def _signed(db, wallet, purpose=PURPOSE_CLAIM):
    record = issue_nonce(db, wallet.address, purpose)
    return record, wallet.sign_nonce(record.nonce)


def _claims(db, campaign):
    return db.query(Claim).filter(Claim.campaign_id == campaign.id).all()


def _nonce_used(db, record) -> bool:
    db.expire_all()
    return db.get(AuthNonce, record.id).used


class TestClaimHappyPath:
    def test_first_claim_mints_and_consumes(self, db_session, open_campaign, wallet, minter):
        record, signature = _signed(db_session, wallet)

        outcome = claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, minter)

        assert outcome.idempotent is False
        assert outcome.claim.tx_signature == "tx-1-" + wallet.address[:6]
        assert outcome.claim.amount == 3
        assert outcome.claim.source_address == "0xabc"
        assert minter.calls == [
            {
                "owner_wallet": wallet.address,
                "metadata_uri": open_campaign.resolved_metadata_uri,
                "name": "Community Revival Revival Pass",
                "symbol": "REVIVE",
            }
        ]
        assert _nonce_used(db_session, record) is True
        [intent] = claims.list_intents(db_session, open_campaign)
        assert intent.status == INTENT_COMMITTED
        assert intent.tx_signature == outcome.claim.tx_signature

        response = outcome.to_response()
        assert response["idempotent"] is False
        assert response["explorer"] == settings.explorer_tx_url(outcome.claim.tx_signature)
        assert response["explorer"].startswith("https://explorer.solana.com/tx/tx-1-")

    def test_second_claim_is_idempotent(self, db_session, open_campaign, wallet, minter):
        first_nonce, first_signature = _signed(db_session, wallet)
        first = claims.claim(db_session, open_campaign, wallet.address, first_nonce.nonce, first_signature, minter)
        second_nonce, second_signature = _signed(db_session, wallet)

        second = claims.claim(db_session, open_campaign, wallet.address, second_nonce.nonce, second_signature, minter)

        assert second.idempotent is True
        assert second.claim.tx_signature == first.claim.tx_signature
        assert second.claim.mint_address == first.claim.mint_address
        assert len(minter.calls) == 1
        assert len(_claims(db_session, open_campaign)) == 1
        # the nonce of an idempotent retry is left alone
        assert _nonce_used(db_session, second_nonce) is False

    @pytest.mark.parametrize("retry", ["no_nonce", "used_nonce", "bad_signature"])
    def test_retry_after_success_skips_auth(self, db_session, open_campaign, wallet, minter, retry):
        record, signature = _signed(db_session, wallet)
        first = claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, minter)
        nonce, sig = {
            "no_nonce": (None, None),
            "used_nonce": (record.nonce, signature),
            "bad_signature": (record.nonce, "x" * 88),
        }[retry]

        again = claims.claim(db_session, open_campaign, wallet.address, nonce, sig, minter)

        assert again.idempotent is True
        assert again.claim.id == first.claim.id
        assert len(minter.calls) == 1

    def test_claim_still_returned_after_close(self, db_session, open_campaign, wallet, minter):
        record, signature = _signed(db_session, wallet)
        first = claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, minter)
        transition_status(db_session, open_campaign, "closed")

        again = claims.claim(db_session, open_campaign, wallet.address, None, None, minter)

        assert again.idempotent is True
        assert again.claim.tx_signature == first.claim.tx_signature


class TestClaimRejections:
    def test_draft_campaign(self, db_session, draft_campaign, wallet, minter):
        record, signature = _signed(db_session, wallet)

        with pytest.raises(CampaignStateError) as exc_info:
            claims.claim(db_session, draft_campaign, wallet.address, record.nonce, signature, minter)

        assert exc_info.value.actual == "draft"
        assert minter.calls == []
        assert _nonce_used(db_session, record) is False

    def test_closed_campaign(self, db_session, open_campaign, wallet, minter):
        transition_status(db_session, open_campaign, "closed")
        record, signature = _signed(db_session, wallet)

        with pytest.raises(CampaignStateError):
            claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, minter)
        assert minter.calls == []

    def test_missing_nonce(self, db_session, open_campaign, wallet, minter):
        with pytest.raises(NonceVerificationError) as exc_info:
            claims.claim(db_session, open_campaign, wallet.address, None, None, minter)
        assert exc_info.value.reason == NonceVerificationError.NOT_FOUND

    def test_login_nonce_cannot_claim(self, db_session, open_campaign, wallet, minter):
        record, signature = _signed(db_session, wallet, purpose=PURPOSE_LOGIN)

        with pytest.raises(NonceVerificationError) as exc_info:
            claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, minter)

        assert exc_info.value.reason == NonceVerificationError.PURPOSE_MISMATCH
        assert minter.calls == []

    def test_bad_signature(self, db_session, open_campaign, wallet, other_wallet, minter):
        record, _ = _signed(db_session, wallet)

        with pytest.raises(NonceVerificationError) as exc_info:
            claims.claim(
                db_session, open_campaign, wallet.address, record.nonce, other_wallet.sign_nonce(record.nonce), minter
            )

        assert exc_info.value.reason == NonceVerificationError.INVALID_SIGNATURE
        assert minter.calls == []
        assert claims.list_intents(db_session, open_campaign) == []

    def test_not_in_snapshot(self, db_session, open_campaign, other_wallet, minter):
        record, signature = _signed(db_session, other_wallet)

        with pytest.raises(NotEligibleError):
            claims.claim(db_session, open_campaign, other_wallet.address, record.nonce, signature, minter)

        assert minter.calls == []
        assert _nonce_used(db_session, record) is False


class TestClaimFailures:
    def test_mint_failure_changes_nothing(self, db_session, open_campaign, wallet):
        failing = FakeMinter(fail=True)
        record, signature = _signed(db_session, wallet)

        with pytest.raises(MintError):
            claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, failing)

        assert _claims(db_session, open_campaign) == []
        assert _nonce_used(db_session, record) is False
        [intent] = claims.list_intents(db_session, open_campaign)
        assert intent.status == INTENT_FAILED
        assert "unavailable" in intent.error

        # the same nonce can be retried once the mint service is back
        failing.fail = False
        outcome = claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, failing)
        assert outcome.idempotent is False
        assert len(failing.calls) == 2

    def test_concurrent_winner_is_returned(self, db_session, session_factory, open_campaign, wallet, minter):
        record, signature = _signed(db_session, wallet)

        def commit_competing_claim(owner_wallet, result):
            other = session_factory()
            try:
                other.add(
                    Claim(
                        campaign_id=open_campaign.id,
                        wallet=owner_wallet,
                        source_address="0xabc",
                        amount=3,
                        tx_signature="tx-winner",
                        mint_address="mint-winner",
                        created_at=1,
                    )
                )
                other.commit()
            finally:
                other.close()

        minter.before_return = commit_competing_claim

        outcome = claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, minter)

        assert outcome.idempotent is True
        assert outcome.claim.tx_signature == "tx-winner"
        assert len(_claims(db_session, open_campaign)) == 1
        [intent] = claims.list_intents(db_session, open_campaign)
        assert intent.status == INTENT_ORPHANED
        assert intent.mint_address == "mint-1-" + wallet.address[:6]
        assert _nonce_used(db_session, record) is False

    def test_nonce_consumed_elsewhere_during_mint(self, db_session, session_factory, open_campaign, wallet, minter):
        record, signature = _signed(db_session, wallet)

        def burn_nonce(owner_wallet, result):
            other = session_factory()
            try:
                other.query(AuthNonce).filter(AuthNonce.id == record.id).update({AuthNonce.used: True})
                other.commit()
            finally:
                other.close()

        minter.before_return = burn_nonce

        with pytest.raises(ClaimPersistenceError):
            claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, minter)

        assert _claims(db_session, open_campaign) == []
        assert [intent.status for intent in claims.list_intents(db_session, open_campaign)] == [INTENT_ORPHANED]

    def test_database_error_on_commit(self, db_session, open_campaign, wallet, minter, monkeypatch):
        record, signature = _signed(db_session, wallet)

        def broken_consume(db, nonce_record):
            raise OperationalError("UPDATE auth_nonces", {}, Exception("database is locked"))

        monkeypatch.setattr(claims, "consume_nonce", broken_consume)

        with pytest.raises(ClaimPersistenceError):
            claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, minter)

        assert _claims(db_session, open_campaign) == []
        assert _nonce_used(db_session, record) is False
        [intent] = claims.list_intents(db_session, open_campaign)
        assert intent.status == INTENT_ORPHANED
        assert intent.tx_signature == "tx-1-" + wallet.address[:6]
        assert "database is locked" in intent.error


    def _fail_first_commit_after_mint(self, db_session, minter, monkeypatch):
        real_commit = db_session.commit
        state = {"failed": False}

        def commit():
            if minter.calls and not state["failed"]:
                state["failed"] = True
                raise OperationalError("UPDATE claim_intents", {}, Exception("database is locked"))
            real_commit()

        monkeypatch.setattr(db_session, "commit", commit)

    def test_intent_update_failure_after_mint_records_orphan(self, db_session, open_campaign, wallet, minter, monkeypatch):
        record, signature = _signed(db_session, wallet)
        self._fail_first_commit_after_mint(db_session, minter, monkeypatch)

        with pytest.raises(ClaimPersistenceError):
            claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, minter)

        assert len(minter.calls) == 1
        assert _claims(db_session, open_campaign) == []
        assert _nonce_used(db_session, record) is False
        [intent] = claims.list_intents(db_session, open_campaign)
        assert intent.status == INTENT_ORPHANED
        assert intent.tx_signature == "tx-1-" + wallet.address[:6]
        assert intent.mint_address == "mint-1-" + wallet.address[:6]
        assert "intent update failed" in intent.error

    def test_failed_mint_stays_a_mint_error_when_intent_update_fails(self, db_session, open_campaign, wallet, monkeypatch):
        failing = FakeMinter(fail=True)
        record, signature = _signed(db_session, wallet)
        self._fail_first_commit_after_mint(db_session, failing, monkeypatch)

        with pytest.raises(MintError):
            claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, failing)

        assert _claims(db_session, open_campaign) == []
        assert _nonce_used(db_session, record) is False
        [intent] = claims.list_intents(db_session, open_campaign)
        assert intent.status == "pending"


class TestEligibility:
    def test_entitled_wallet(self, db_session, open_campaign, wallet):
        result = claims.check_eligibility(db_session, open_campaign, wallet.address)

        assert result == {
            "eligible": True,
            "amount": 3,
            "evm_address": "0xabc",
            "status": "open",
            "claim_open": True,
            "already_claimed": False,
            "existing_claim": None,
        }

    def test_unknown_wallet(self, db_session, open_campaign):
        result = claims.check_eligibility(db_session, open_campaign, SigningWallet().address)

        assert result["eligible"] is False
        assert result["amount"] == 0
        assert result["evm_address"] is None

    def test_claimed_wallet(self, db_session, open_campaign, wallet, minter):
        record, signature = _signed(db_session, wallet)
        outcome = claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, minter)

        result = claims.check_eligibility(db_session, open_campaign, wallet.address)

        assert result["already_claimed"] is True
        assert result["existing_claim"]["tx_signature"] == outcome.claim.tx_signature

    def test_draft_campaign_still_answers(self, db_session, draft_campaign, wallet):
        result = claims.check_eligibility(db_session, draft_campaign, wallet.address)

        assert result["status"] == "draft"
        assert result["claim_open"] is False


def test_list_intents_filters_by_status(db_session, open_campaign, wallet, minter):
    failing = FakeMinter(fail=True)
    record, signature = _signed(db_session, wallet)
    with pytest.raises(MintError):
        claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, failing)
    claims.claim(db_session, open_campaign, wallet.address, record.nonce, signature, minter)

    assert [i.status for i in claims.list_intents(db_session, open_campaign)] == [INTENT_COMMITTED, INTENT_FAILED]
    assert len(claims.list_intents(db_session, open_campaign, INTENT_FAILED)) == 1
    assert claims.list_intents(db_session, open_campaign, INTENT_ORPHANED) == []
    assert db_session.query(ClaimIntent).count() == 2
