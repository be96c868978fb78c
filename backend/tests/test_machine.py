"""
Tests for the conversation state machine.
"""
import itertools
from dataclasses import replace

import pytest

from leadbot.core.errors import DocumentTypeError, InvalidTransitionError, ValidationError
from leadbot.orchestration.catalog import parse_catalog
from leadbot.orchestration.machine import ConversationMachine, find_next_question
from leadbot.orchestration.state import (
    AnswerSubmissionFailed,
    AnswerSubmissionStarted,
    AnswerSubmissionSucceeded,
    DocumentSubmissionFailed,
    DocumentSubmissionStarted,
    DocumentSubmissionSucceeded,
    FileChosen,
    OptionSelected,
    PendingUpload,
    QuoteReady,
    Speaker,
    Stage,
    StageKind,
    TextAnswered,
    UploadReceipt,
)
from tests.conftest import PNG_BYTES, TEST_UPLOAD_POLICY


PNG = PendingUpload(filename="front.png", content_type="image/png", data=PNG_BYTES)


def receipt(question_id: str = "Eid_front") -> UploadReceipt:
    return UploadReceipt(question_id=question_id, doc_type="EMIRATESID_FRONT", path="/docs/x.png", checksum="abc")


def answered(machine, session, *events):
    return machine.replay(session, events)


@pytest.fixture
def ready_session(machine):
    """Session with all text answers collected."""
    session = machine.create_session(tracking_id="TRACK-1")
    return answered(machine, session, TextAnswered("Alice"), OptionSelected("no"))


@pytest.fixture
def doc_session(machine, ready_session):
    """Session waiting for the first document."""
    return answered(machine, ready_session, AnswerSubmissionStarted(), AnswerSubmissionSucceeded())


class TestStage:
    """Test the tagged stage variant."""

    def test_names(self):
        assert Stage.collecting_answers().name == "collecting_answers"
        assert Stage.collecting_doc(2).name == "collecting_doc_2"
        assert Stage.submitting_doc(3).doc_index == 2

    def test_document_stage_requires_number(self):
        with pytest.raises(ValueError):
            Stage(StageKind.COLLECTING_DOC)
        with pytest.raises(ValueError):
            Stage.collecting_doc(0)

    def test_text_stage_rejects_number(self):
        with pytest.raises(ValueError):
            Stage(StageKind.COMPLETED, 1)


class TestSessionStart:
    """Test conversation creation."""

    def test_first_question_presented(self, machine):
        session = machine.create_session()
        assert session.stage == Stage.collecting_answers()
        assert session.cursor == 0
        assert session.tracking_id.startswith("TRACK-")
        assert [m.content for m in session.messages] == [
            "Welcome!",
            "Let's get started with a few questions.",
            "What is your name?",
        ]
        assert session.messages[-1].question_id == "name"

    def test_tracking_ids_are_unique(self, machine):
        assert machine.create_session().tracking_id != machine.create_session().tracking_id

    def test_tracking_id_never_changes(self, machine, doc_session):
        session = answered(machine, doc_session, FileChosen(PNG), DocumentSubmissionStarted())
        assert session.tracking_id == "TRACK-1"


class TestDependencyScenario:
    """name / hasCar / carModel scenario."""

    def test_has_car_no_skips_car_model(self, machine):
        session = machine.create_session()
        session = machine.reduce(session, TextAnswered("Alice"))
        assert machine.current_question(session).id == "hasCar"

        session = machine.reduce(session, OptionSelected("no"))
        assert session.stage == Stage.answers_ready()
        assert session.answers == {"name": "Alice", "hasCar": "no"}
        assert session.messages[-1].content == "Great, I have all your details. Please review and click submit."

    def test_has_car_yes_asks_car_model(self, machine):
        session = answered(machine, machine.create_session(), TextAnswered("Alice"), OptionSelected("yes"))
        assert session.stage == Stage.collecting_answers()
        assert machine.current_question(session).id == "carModel"

        session = machine.reduce(session, TextAnswered("Corolla"))
        assert session.stage == Stage.answers_ready()
        assert session.answers["carModel"] == "Corolla"

    def test_user_messages_recorded(self, machine):
        session = answered(machine, machine.create_session(), TextAnswered("  Alice "), OptionSelected("no"))
        user_messages = [m.content for m in session.messages if m.speaker == Speaker.USER]
        assert user_messages == ["  Alice ", "no"]
        assert session.answers["name"] == "  Alice "


class TestForwardOnlyScan:
    """Skipped questions are never revisited."""

    CATALOG = {"questions": [
        {"id": "X", "type": "select", "question": "X?", "options": ["a", "b", "c"]},
        {"id": "Q", "type": "text", "question": "Q?", "dependsOn": {"id": "X", "value": ["a", "b"]}},
        {"id": "Y", "type": "text", "question": "Y?"},
        {"id": "Z", "type": "text", "question": "Z?"},
    ]}

    def test_bypassed_question_stays_skipped_after_parent_changes(self):
        machine = ConversationMachine(parse_catalog(self.CATALOG), upload_policy=TEST_UPLOAD_POLICY)
        session = machine.reduce(machine.create_session(), OptionSelected("c"))
        assert machine.current_question(session).id == "Y"

        # Parent answer now satisfies Q, but the scan only moves forward
        session = replace(session, answers={**session.answers, "X": "a"})
        session = machine.reduce(session, TextAnswered("y"))
        assert machine.current_question(session).id == "Z"

        session = machine.reduce(session, TextAnswered("z"))
        assert session.stage == Stage.answers_ready()
        assert "Q" not in session.answers

    def test_find_next_question_skips_unsatisfied(self):
        catalog = parse_catalog(self.CATALOG)
        assert find_next_question(catalog.text_questions, 1, {"X": "c"}) == (2, catalog.text_questions[2])
        assert find_next_question(catalog.text_questions, 1, {"X": "b"}) == (1, catalog.text_questions[1])
        assert find_next_question(catalog.text_questions, 4, {}) == (4, None)

    def test_missing_parent_answer_is_ineligible(self):
        catalog = parse_catalog(self.CATALOG)
        assert find_next_question(catalog.text_questions, 1, {})[0] == 2


class TestNextQuestionProperty:
    """The presented question is always the lowest eligible index after the last answer."""

    CATALOG = {"questions": [
        {"id": "a", "type": "select", "question": "A?", "options": ["1", "2", "3"]},
        {"id": "b", "type": "select", "question": "B?", "options": ["1", "2"],
         "dependsOn": {"id": "a", "value": ["1", "2"]}},
        {"id": "c", "type": "select", "question": "C?", "options": ["1", "2"],
         "dependsOn": {"id": "b", "value": ["2"]}},
        {"id": "d", "type": "select", "question": "D?", "options": ["1", "2"]},
        {"id": "e", "type": "select", "question": "E?", "options": ["1", "2"],
         "dependsOn": {"id": "a", "value": ["3"]}},
        {"id": "f", "type": "select", "question": "F?", "options": ["1"],
         "dependsOn": {"id": "d", "value": ["2"]}},
    ]}

    @staticmethod
    def eligible(question, answers):
        return question.depends_on is None or question.depends_on.is_satisfied_by(answers)

    def test_all_answer_sequences(self):
        catalog = parse_catalog(self.CATALOG)
        machine = ConversationMachine(catalog, upload_policy=TEST_UPLOAD_POLICY)
        questions = catalog.text_questions

        for choices in itertools.product(["1", "2", "3"], ["1", "2"], ["1", "2"], ["1", "2"], ["1", "2"], ["1"]):
            pick = dict(zip("abcdef", choices))
            session = machine.create_session()
            last_answered = -1

            while session.stage == Stage.collecting_answers():
                expected = next(
                    i for i in range(last_answered + 1, len(questions))
                    if self.eligible(questions[i], session.answers)
                )
                assert session.cursor == expected
                question = questions[session.cursor]
                option = pick[question.id] if pick[question.id] in question.options else question.options[0]
                last_answered = session.cursor
                session = machine.reduce(session, OptionSelected(option))

            assert session.stage == Stage.answers_ready()
            for index in range(last_answered + 1, len(questions)):
                assert not self.eligible(questions[index], session.answers)


class TestTextValidation:
    """Test local answer validation."""

    CATALOG = {"questions": [
        {"id": "email", "type": "email", "question": "Email?",
         "validation": {"pattern": "^[^@\\s]+@[^@\\s]+\\.[a-z]+$", "errorMessage": "Bad email"}},
        {"id": "code", "type": "text", "question": "Code?", "validation": {"pattern": "\\d{3}"}},
        {"id": "pick", "type": "select", "question": "Pick?", "options": ["x", "y"]},
    ]}

    @pytest.fixture
    def vmachine(self):
        return ConversationMachine(parse_catalog(self.CATALOG), upload_policy=TEST_UPLOAD_POLICY)

    def test_pattern_mismatch_uses_error_message(self, vmachine):
        session = vmachine.create_session()
        with pytest.raises(ValidationError, match="Bad email"):
            vmachine.reduce(session, TextAnswered("not-an-email"))

    def test_default_error_message(self, vmachine):
        session = vmachine.reduce(vmachine.create_session(), TextAnswered("a@b.com"))
        with pytest.raises(ValidationError, match="Invalid format"):
            vmachine.reduce(session, TextAnswered("ab"))

    def test_pattern_checks_value_as_typed(self, vmachine):
        with pytest.raises(ValidationError, match="Bad email"):
            vmachine.reduce(vmachine.create_session(), TextAnswered(" a@b.com"))

    def test_blank_answer_rejected(self, vmachine):
        with pytest.raises(ValidationError):
            vmachine.reduce(vmachine.create_session(), TextAnswered("   "))

    def test_select_requires_option(self, vmachine):
        session = vmachine.replay(vmachine.create_session(), [TextAnswered("a@b.com"), TextAnswered("123")])
        with pytest.raises(ValidationError):
            vmachine.reduce(session, TextAnswered("x"))
        with pytest.raises(ValidationError):
            vmachine.reduce(session, OptionSelected("z"))

    def test_option_on_text_question_rejected(self, vmachine):
        with pytest.raises(ValidationError):
            vmachine.reduce(vmachine.create_session(), OptionSelected("x"))

    def test_reject_records_error_without_stage_change(self, vmachine):
        session = vmachine.create_session()
        rejected = vmachine.reject(session, ValidationError("Bad email"))
        assert rejected.error == "Bad email"
        assert rejected.stage == session.stage
        assert rejected.cursor == session.cursor

    def test_valid_answer_clears_error(self, vmachine):
        session = vmachine.reject(vmachine.create_session(), ValidationError("Bad email"))
        session = vmachine.reduce(session, TextAnswered("a@b.com"))
        assert session.error is None


class TestAnswerSubmission:
    """Test the answer submission stages."""

    def test_submit_only_when_ready(self, machine):
        with pytest.raises(InvalidTransitionError):
            machine.reduce(machine.create_session(), AnswerSubmissionStarted())

    def test_started_marks_typing(self, machine, ready_session):
        session = machine.reduce(ready_session, AnswerSubmissionStarted())
        assert session.stage == Stage.submitting_answers()
        assert session.typing is True

    def test_failure_returns_to_ready_with_answers_intact(self, machine, ready_session):
        session = machine.replay(ready_session, [AnswerSubmissionStarted(), AnswerSubmissionFailed("timeout")])
        assert session.stage == Stage.answers_ready()
        assert session.answers == ready_session.answers
        assert session.typing is False
        assert session.error == "timeout"
        assert session.messages[-1].content == "❌ Submission failed: timeout. Please try again."

    def test_success_presents_first_document(self, machine, doc_session):
        assert doc_session.stage == Stage.collecting_doc(1)
        assert doc_session.messages[-1].question_id == "Eid_front"
        assert machine.current_question(doc_session).id == "Eid_front"

    def test_no_documents_goes_straight_to_completed(self):
        catalog = parse_catalog({"questions": [{"id": "a", "type": "text", "question": "A"}]})
        machine = ConversationMachine(catalog, upload_policy=TEST_UPLOAD_POLICY)
        session = machine.replay(machine.create_session(), [
            TextAnswered("x"), AnswerSubmissionStarted(), AnswerSubmissionSucceeded(),
        ])
        assert session.stage == Stage.completed()


class TestDocumentFlow:
    """Test document collection stages."""

    def test_file_only_accepted_while_collecting_documents(self, machine, ready_session):
        with pytest.raises(InvalidTransitionError):
            machine.reduce(ready_session, FileChosen(PNG))

    def test_oversized_file_rejected(self, machine, doc_session):
        big = PendingUpload(filename="big.png", content_type="image/png", data=b"x" * 2048)
        with pytest.raises(ValidationError, match="limit"):
            machine.reduce(doc_session, FileChosen(big))

    def test_wrong_mime_rejected(self, machine, doc_session):
        gif = PendingUpload(filename="a.gif", content_type="image/gif", data=b"GIF89a")
        with pytest.raises(ValidationError, match="Unsupported"):
            machine.reduce(doc_session, FileChosen(gif))

    def test_submit_without_file_rejected(self, machine, doc_session):
        with pytest.raises(ValidationError, match="choose a file"):
            machine.reduce(doc_session, DocumentSubmissionStarted())

    def test_documents_in_catalog_order(self, machine, doc_session):
        session = machine.replay(doc_session, [
            FileChosen(PNG), DocumentSubmissionStarted(), DocumentSubmissionSucceeded(receipt()),
        ])
        assert session.stage == Stage.collecting_doc(2)
        assert session.pending_upload is None
        assert machine.current_question(session).id == "Eid_back"
        assert session.messages[-1].question_id == "Eid_back"

    def test_failure_keeps_file_and_returns_to_same_document(self, machine, doc_session):
        session = machine.replay(doc_session, [
            FileChosen(PNG), DocumentSubmissionStarted(), DocumentSubmissionFailed("Network error"),
        ])
        assert session.stage == Stage.collecting_doc(1)
        assert session.pending_upload == PNG
        assert session.submitted_documents == ()
        assert "Emirates ID (Front) submission failed" in session.messages[-1].content

    def test_second_document_only_after_first_succeeds(self, machine, doc_session):
        session = machine.replay(doc_session, [FileChosen(PNG), DocumentSubmissionStarted()])
        with pytest.raises(InvalidTransitionError):
            machine.reduce(session, FileChosen(PNG))

    def test_last_document_completes(self, machine, doc_session):
        session = machine.replay(doc_session, [
            FileChosen(PNG), DocumentSubmissionStarted(), DocumentSubmissionSucceeded(receipt("Eid_front")),
            FileChosen(PNG), DocumentSubmissionStarted(), DocumentSubmissionSucceeded(receipt("Eid_back")),
        ])
        assert session.stage == Stage.completed()
        assert len(session.submitted_documents) == 2
        assert f"#{session.tracking_id}" in session.messages[-2].content

    def test_unknown_document_type_rejected_locally(self):
        catalog = parse_catalog({"questions": [
            {"id": "a", "type": "text", "question": "A"},
            {"id": "passport", "type": "file_upload", "question": "Passport"},
        ]})
        machine = ConversationMachine(catalog, upload_policy=TEST_UPLOAD_POLICY)
        session = machine.replay(machine.create_session(), [
            TextAnswered("x"), AnswerSubmissionStarted(), AnswerSubmissionSucceeded(), FileChosen(PNG),
        ])
        with pytest.raises(DocumentTypeError):
            machine.reduce(session, DocumentSubmissionStarted())


class TestQuoteReady:
    """Test the terminal stage."""

    def test_quote_link_surfaced_once(self, machine, doc_session):
        session = machine.replay(doc_session, [
            FileChosen(PNG), DocumentSubmissionStarted(), DocumentSubmissionSucceeded(receipt()),
            FileChosen(PNG), DocumentSubmissionStarted(), DocumentSubmissionSucceeded(receipt("Eid_back")),
            QuoteReady("http://docs.test/artifacts/q.pdf"),
        ])
        assert session.quote_url == "http://docs.test/artifacts/q.pdf"
        again = machine.reduce(session, QuoteReady("http://docs.test/artifacts/other.pdf"))
        assert again == session
        assert sum(1 for m in again.messages if m.link) == 1

    def test_quote_before_completion_rejected(self, machine, doc_session):
        with pytest.raises(InvalidTransitionError):
            machine.reduce(doc_session, QuoteReady("http://x"))


class TestReplay:
    """Sessions are values: the same events give the same session."""

    def test_deterministic_replay(self, machine):
        events = [TextAnswered("Alice"), OptionSelected("yes"), TextAnswered("Corolla"), AnswerSubmissionStarted()]
        first = machine.replay(machine.create_session(tracking_id="TRACK-9"), events)
        second = machine.replay(machine.create_session(tracking_id="TRACK-9"), events)
        assert first == second

    def test_reduce_does_not_mutate_input(self, machine):
        session = machine.create_session()
        before = (session.stage, session.cursor, dict(session.answers), session.messages)
        machine.reduce(session, TextAnswered("Alice"))
        assert (session.stage, session.cursor, dict(session.answers), session.messages) == before
