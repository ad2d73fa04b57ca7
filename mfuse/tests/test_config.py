import pytest
from pydantic import ValidationError

from mfuse.config.settings import (
    ClipConfig,
    EmbeddingModelsConfig,
    MFuseConfig,
    QueueConfig,
    WeightConfig,
)


def test_weight_defaults():
    weights = WeightConfig()
    assert (weights.text, weights.visual, weights.engagement) == (0.6, 0.4, 0.0)


def test_weights_must_sum_to_one():
    with pytest.raises(ValidationError):
        WeightConfig(text=0.6, visual=0.6, engagement=0.0)


def test_weights_sum_tolerance():
    WeightConfig(text=0.1, visual=0.2, engagement=0.7)


def test_weights_from_environment(monkeypatch):
    monkeypatch.setenv("FUSION_WEIGHT_TEXT", "0.5")
    monkeypatch.setenv("FUSION_WEIGHT_VISUAL", "0.3")
    monkeypatch.setenv("FUSION_WEIGHT_ENGAGEMENT", "0.2")

    weights = WeightConfig()

    assert (weights.text, weights.visual, weights.engagement) == (0.5, 0.3, 0.2)


def test_malformed_weights_from_environment_fail_at_load(monkeypatch):
    monkeypatch.setenv("FUSION_WEIGHT_TEXT", "0.9")
    with pytest.raises(ValidationError):
        EmbeddingModelsConfig()


def test_default_dimensions():
    config = EmbeddingModelsConfig()
    assert config.text_embedding.dimension == 384
    assert config.clip.dimension == 512
    assert config.legacy.dimension == 128
    assert config.whisper.sample_rate == 16000


def test_mock_profile_disables_heavy_models():
    config = EmbeddingModelsConfig.mock()
    assert config.clip.enabled is False
    assert config.whisper.enabled is False
    assert config.text_embedding.enabled is True


def test_unknown_profile():
    with pytest.raises(ValidationError):
        EmbeddingModelsConfig(profile="turbo")


def test_clip_provider_config():
    provider_config = ClipConfig(model_name="openai/clip-vit-base-patch16", batch_size=4).to_provider_config()
    assert provider_config["model_name"] == "openai/clip-vit-base-patch16"
    assert provider_config["batch_size"] == 4


def test_schedule_time_default():
    assert QueueConfig().embeddings_schedule_time == "01:00"


def test_schedule_time_from_legacy_variable(monkeypatch):
    monkeypatch.delenv("QUEUE_EMBEDDINGS_SCHEDULE_TIME", raising=False)
    monkeypatch.setenv("EMBEDDINGS_SCHEDULE_TIME", "03:30")
    assert QueueConfig().embeddings_schedule_time == "03:30"


def test_prefixed_schedule_time_wins(monkeypatch):
    monkeypatch.setenv("EMBEDDINGS_SCHEDULE_TIME", "03:30")
    monkeypatch.setenv("QUEUE_EMBEDDINGS_SCHEDULE_TIME", "04:45")
    assert QueueConfig().embeddings_schedule_time == "04:45"


@pytest.mark.parametrize("value", ["1:00", "24:00", "12:75", "noon"])
def test_invalid_schedule_time(value):
    with pytest.raises(ValidationError):
        QueueConfig(embeddings_schedule_time=value)


def test_app_config_sections_are_cached():
    config = MFuseConfig()
    assert config.queue is config.queue
    assert config.models.weights.text == pytest.approx(0.6)
