import pytest

from mfuse.exceptions import ProcessingStepError
from mfuse.moments import ProcessingStatus, ProcessingStep, ProcessingStepName, StepStatus


def test_steps_are_appended_in_order():
    status = ProcessingStatus()
    status.append(ProcessingStepName.UPLOAD, StepStatus.COMPLETED)
    status.append(ProcessingStepName.VIDEO_COMPRESSION)
    status.append(ProcessingStepName.EMBEDDING_GENERATION)

    assert [step.name for step in status.steps] == [
        ProcessingStepName.UPLOAD,
        ProcessingStepName.VIDEO_COMPRESSION,
        ProcessingStepName.EMBEDDING_GENERATION,
    ]


def test_append_rejects_existing_step():
    status = ProcessingStatus()
    status.append(ProcessingStepName.MODERATION)
    with pytest.raises(ProcessingStepError):
        status.append(ProcessingStepName.MODERATION)


def test_ensure_is_idempotent():
    status = ProcessingStatus()
    first = status.ensure(ProcessingStepName.VIDEO_COMPRESSION)
    assert status.ensure(ProcessingStepName.VIDEO_COMPRESSION) is first
    assert len(status.steps) == 1


def test_lifecycle():
    status = ProcessingStatus()
    status.append(ProcessingStepName.EMBEDDING_GENERATION)

    step = status.start(ProcessingStepName.EMBEDDING_GENERATION)
    assert step.status == StepStatus.PROCESSING
    assert step.started_at is not None

    status.update_progress(ProcessingStepName.EMBEDDING_GENERATION, 140)
    assert step.progress == 100.0

    status.complete(ProcessingStepName.EMBEDDING_GENERATION)
    assert step.status == StepStatus.COMPLETED
    assert step.completed_at is not None


def test_completed_at_is_written_once():
    status = ProcessingStatus()
    status.complete(ProcessingStepName.VIDEO_COMPRESSION)
    completed_at = status.get(ProcessingStepName.VIDEO_COMPRESSION).completed_at

    with pytest.raises(ProcessingStepError):
        status.complete(ProcessingStepName.VIDEO_COMPRESSION)
    assert status.get(ProcessingStepName.VIDEO_COMPRESSION).completed_at == completed_at


def test_fail_records_error():
    status = ProcessingStatus()
    step = status.fail(ProcessingStepName.VIDEO_COMPRESSION, "ffmpeg exited with 1")
    assert step.status == StepStatus.ERROR
    assert step.error == "ffmpeg exited with 1"


def test_round_trips_through_json():
    status = ProcessingStatus()
    status.start(ProcessingStepName.UPLOAD)
    restored = ProcessingStatus.model_validate_json(status.model_dump_json())
    assert restored.get(ProcessingStepName.UPLOAD).status == StepStatus.PROCESSING


def test_put_replaces_only_the_named_step():
    status = ProcessingStatus()
    status.append(ProcessingStepName.VIDEO_COMPRESSION)
    status.append(ProcessingStepName.EMBEDDING_GENERATION)

    status.put(ProcessingStep(name=ProcessingStepName.EMBEDDING_GENERATION, status=StepStatus.PROCESSING))
    status.put(ProcessingStep(name=ProcessingStepName.UPLOAD, status=StepStatus.COMPLETED))

    assert [(step.name, step.status) for step in status.steps] == [
        (ProcessingStepName.VIDEO_COMPRESSION, StepStatus.PENDING),
        (ProcessingStepName.EMBEDDING_GENERATION, StepStatus.PROCESSING),
        (ProcessingStepName.UPLOAD, StepStatus.COMPLETED),
    ]
