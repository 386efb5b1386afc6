import pytest

from open_lotto import errors


@pytest.mark.parametrize(
    "code,cls",
    [
        (6000, errors.EndTimestampPassed),
        (6001, errors.PotClosed),
        (6002, errors.RandomnessAlreadyRevealed),
        (6003, errors.NotEnoughFundsToPlay),
        (6004, errors.InvalidRandomnessAccount),
        (6005, errors.RandomnessNotResolved),
        (6006, errors.TicketAccountNotWinning),
    ],
)
def test_deployed_codes_are_stable(code, cls):
    assert errors.error_from_code(code) is cls


def test_codes_are_unique():
    seen = {}
    stack = list(errors.LottoError.__subclasses__())
    while stack:
        cls = stack.pop()
        stack.extend(cls.__subclasses__())
        if cls.code >= 0:
            assert cls.code not in seen, (cls, seen.get(cls.code))
            seen[cls.code] = cls
    assert seen == errors.ERRORS_BY_CODE


def test_taxonomy():
    assert issubclass(errors.PotClosed, errors.TimingError)
    assert issubclass(errors.WinnerAlreadySelected, errors.DuplicationError)
    assert issubclass(errors.TicketOwnerMismatch, errors.AuthorizationError)
    assert issubclass(errors.ManagerNameTooLong, errors.ResourceError)
    assert issubclass(errors.LottoError, RuntimeError)


def test_message_includes_detail():
    e = errors.PotClosed("ended at 5")
    assert str(e) == "The pot is already closed (ended at 5)"
    assert e.code == 6001
    assert errors.error_from_code(9999) is None
    assert errors.error_from_code(0) is None
