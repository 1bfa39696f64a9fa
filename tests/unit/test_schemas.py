import pytest
from pydantic import ValidationError

from ziggle_chat.schemas import ChatRequest


def test_question_is_stripped():
    assert ChatRequest(question="  장학금 신청 기간은?\n").question == "장학금 신청 기간은?"


@pytest.mark.parametrize("question", ["", "   ", " \n\t "])
def test_blank_question_is_rejected(question):
    with pytest.raises(ValidationError):
        ChatRequest(question=question)
