import pytest

from deploymate.agents.readiness import ReadinessClassifier


@pytest.fixture
def classifier(config):
    return ReadinessClassifier(config.readiness.phrases)


def test_announcement_is_ready(classifier):
    assert classifier.is_ready("Generating your infrastructure now...")


def test_question_is_not_ready(classifier):
    assert not classifier.is_ready("Can you tell me more about the region?")


@pytest.mark.parametrize(
    "reply",
    [
        "Great, I have everything I need. I'LL GENERATE the files next.",
        "Thanks! Proceeding to generate the OpenTofu code.",
        "Summary:\n- AWS\n- Postgres\n\nReady to generate!",
        "Let me generate that for you.",
    ],
)
def test_alternate_phrasings_are_ready(classifier, reply):
    assert classifier.is_ready(reply)


def test_match_reports_the_phrase(classifier):
    assert classifier.match("OK — starting generation.") == "starting generation"
    assert classifier.match("Which database do you use?") is None


def test_patterns_are_case_insensitive():
    classifier = ReadinessClassifier({"Ship It": "custom phrase"})
    assert classifier.is_ready("alright, ship it")
