"""
CLI Entry Point Tests

Covers:
1. Re-selection of a rejected API key and resubmission with the new key
2. Declined or cancelled re-selection exits with the credential exit code
3. Ordinary failures do not touch the key
4. Configured resolution and aspect ratio defaults

Run with:
    python -m pytest tests/test_main.py -v
"""

import os
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import main
from services.credentials import ApiKeySelector, CredentialGate, CredentialState
from services.video_generation.models import FetchResult

DOWNLOAD_URI = "https://generativelanguage.googleapis.com/v1beta/files/op1:download?alt=media"


def finished_operation():
    return SimpleNamespace(
        name="models/veo/operations/op1",
        done=True,
        error=None,
        response=SimpleNamespace(
            generated_videos=[SimpleNamespace(video=SimpleNamespace(uri=DOWNLOAD_URI))],
            rai_media_filtered_reasons=None,
        ),
    )


class FakeVeo:
    """Builds genai client mocks; the listed keys are refused at submission."""

    def __init__(self, bad_keys=("bad-key",), error="API key not valid. Please pass a valid API key."):
        self.bad_keys = bad_keys
        self.error = error
        self.keys_used: list[str] = []

    def __call__(self, key: str):
        self.keys_used.append(key)
        client = MagicMock()
        if key in self.bad_keys:
            client.aio.models.generate_videos = AsyncMock(side_effect=Exception(self.error))
        else:
            client.aio.models.generate_videos = AsyncMock(
                return_value=SimpleNamespace(name="models/veo/operations/op1", done=False),
            )
            client.aio.operations.get = AsyncMock(return_value=finished_operation())
        return client


class FakeArtifactStore:
    def __init__(self):
        self.calls = []

    async def fetch(self, uri, credential):
        self.calls.append((uri, credential))
        return FetchResult(ok=True, status_text="OK", content=b"mp4-bytes", content_type="video/mp4")


class Prompt:
    """Stands in for the terminal key prompt."""

    def __init__(self, answer="good-key"):
        self.answer = answer
        self.opened = 0

    def __call__(self, text):
        self.opened += 1
        if isinstance(self.answer, BaseException):
            raise self.answer
        return self.answer


@pytest.fixture
def env_key(monkeypatch):
    monkeypatch.setenv("SCENEREEL_TEST_KEY", "bad-key")
    return ("SCENEREEL_TEST_KEY",)


async def run_generate(tmp_path, selector, veo, store, confirm=lambda _: "y"):
    return await main.generate_video(
        prompt="a cat surfing",
        resolution="720p",
        aspect_ratio="16:9",
        output_dir=str(tmp_path),
        poll_interval=0,
        selector=selector,
        client_factory=veo,
        artifact_store=store,
        confirm=confirm,
    )


class TestGenerateCredentialFlow:
    """Test what the CLI does when the service rejects the key."""

    @pytest.mark.asyncio
    async def test_rejected_key_prompts_and_resubmits(self, tmp_path, env_key):
        """A rejected env key opens the prompt; the scene is resubmitted with the new key."""
        prompt = Prompt("good-key")
        selector = ApiKeySelector(env_vars=env_key, prompt=prompt)
        veo = FakeVeo()
        store = FakeArtifactStore()

        exit_code = await run_generate(tmp_path, selector, veo, store)

        assert exit_code == main.EXIT_OK
        assert prompt.opened == 1
        assert veo.keys_used == ["bad-key", "good-key"]
        assert store.calls == [(DOWNLOAD_URI, "good-key")]
        assert (tmp_path / "video_op1.mp4").read_bytes() == b"mp4-bytes"

    @pytest.mark.asyncio
    async def test_declined_resubmit_keeps_new_key(self, tmp_path, env_key):
        """Declining the resubmit exits with the credential code, but the new key is kept."""
        prompt = Prompt("good-key")
        selector = ApiKeySelector(env_vars=env_key, prompt=prompt)
        veo = FakeVeo()

        exit_code = await run_generate(tmp_path, selector, veo, FakeArtifactStore(), confirm=lambda _: "n")

        assert exit_code == main.EXIT_CREDENTIAL
        assert prompt.opened == 1
        assert veo.keys_used == ["bad-key"]
        assert selector.current_credential() == "good-key"

    @pytest.mark.asyncio
    async def test_cancelled_prompt_does_not_reselect_bad_key(self, tmp_path, env_key):
        """If no new key is entered, the rejected env key no longer counts as selected."""
        prompt = Prompt(EOFError())
        selector = ApiKeySelector(env_vars=env_key, prompt=prompt)
        veo = FakeVeo()

        exit_code = await run_generate(tmp_path, selector, veo, FakeArtifactStore())

        assert exit_code == main.EXIT_CREDENTIAL
        assert prompt.opened == 1
        assert veo.keys_used == ["bad-key"]
        assert await CredentialGate(selector).check_initial() == CredentialState.UNSELECTED

    @pytest.mark.asyncio
    async def test_other_failure_leaves_key_alone(self, tmp_path, env_key):
        """A quota error fails the run without prompting for a key."""
        prompt = Prompt("good-key")
        selector = ApiKeySelector(env_vars=env_key, prompt=prompt)
        veo = FakeVeo(error="429 RESOURCE_EXHAUSTED quota exceeded")

        exit_code = await run_generate(tmp_path, selector, veo, FakeArtifactStore())

        assert exit_code == main.EXIT_FAILED
        assert prompt.opened == 0
        assert selector.current_credential() == "bad-key"

    @pytest.mark.asyncio
    async def test_no_key_and_no_entry(self, tmp_path, monkeypatch):
        """Without any key and with an empty prompt nothing is submitted."""
        monkeypatch.delenv("SCENEREEL_TEST_KEY", raising=False)
        selector = ApiKeySelector(env_vars=("SCENEREEL_TEST_KEY",), prompt=Prompt(""))
        veo = FakeVeo()

        exit_code = await run_generate(tmp_path, selector, veo, FakeArtifactStore())

        assert exit_code == main.EXIT_CREDENTIAL
        assert veo.keys_used == []


class TestGenerateRequest:
    """Test request construction in the CLI."""

    @pytest.mark.asyncio
    async def test_blank_prompt_is_rejected(self, tmp_path):
        veo = FakeVeo()
        exit_code = await main.generate_video(
            prompt="   ",
            output_dir=str(tmp_path),
            selector=ApiKeySelector(env_vars=(), prompt=Prompt()),
            client_factory=veo,
            artifact_store=FakeArtifactStore(),
        )

        assert exit_code == main.EXIT_FAILED
        assert veo.keys_used == []

    @pytest.mark.asyncio
    async def test_configured_defaults_reach_veo(self, tmp_path, monkeypatch):
        """Without explicit flags the configured resolution and aspect ratio are used."""
        from core.config import reload_config

        monkeypatch.setenv("VEO_RESOLUTION", "1080p")
        monkeypatch.setenv("VEO_ASPECT_RATIO", "9:16")
        monkeypatch.setenv("SCENEREEL_TEST_KEY", "good-key")
        reload_config()

        clients = []

        def veo(key):
            client = FakeVeo()(key)
            clients.append(client)
            return client

        try:
            exit_code = await main.generate_video(
                prompt="a cat surfing",
                output_dir=str(tmp_path),
                poll_interval=0,
                selector=ApiKeySelector(env_vars=("SCENEREEL_TEST_KEY",), prompt=Prompt()),
                client_factory=veo,
                artifact_store=FakeArtifactStore(),
            )
        finally:
            monkeypatch.delenv("VEO_RESOLUTION")
            monkeypatch.delenv("VEO_ASPECT_RATIO")
            reload_config()

        assert exit_code == main.EXIT_OK
        config = clients[0].aio.models.generate_videos.call_args.kwargs["config"]
        assert config.resolution == "1080p"
        assert config.aspect_ratio == "9:16"
