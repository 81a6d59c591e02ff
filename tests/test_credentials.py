"""Tests for reading the API key from config.xml."""

import asyncio

import pytest

from syncthing_init.credentials import read_api_key, wait_for_api_key
from syncthing_init.errors import CredentialTimeoutError

CONFIG_XML = """<configuration version="37">
    <folder id="default" path="/var/lib/syncthing/Sync"></folder>
    <gui enabled="true" tls="false">
        <address>127.0.0.1:8384</address>
        <apikey>  k3yFromXml  </apikey>
        <theme>default</theme>
    </gui>
</configuration>
"""


class TestReadApiKey:
    """Tests for read_api_key."""

    def test_reads_key(self, tmp_path):
        """Test the key is extracted and stripped."""
        (tmp_path / "config.xml").write_text(CONFIG_XML)
        assert read_api_key(tmp_path) == "k3yFromXml"

    def test_missing_file(self, tmp_path):
        """Test a missing file means not ready."""
        assert read_api_key(tmp_path) is None

    def test_partial_file(self, tmp_path):
        """Test a half-written file means not ready."""
        (tmp_path / "config.xml").write_text(CONFIG_XML[:80])
        assert read_api_key(tmp_path) is None

    def test_no_apikey_element(self, tmp_path):
        """Test a config without a key means not ready."""
        (tmp_path / "config.xml").write_text(
            "<configuration><gui><address>x</address></gui></configuration>"
        )
        assert read_api_key(tmp_path) is None

    def test_wrong_root(self, tmp_path):
        """Test other XML documents are ignored."""
        (tmp_path / "config.xml").write_text("<other><gui><apikey>x</apikey></gui></other>")
        assert read_api_key(tmp_path) is None


class TestWaitForApiKey:
    """Tests for wait_for_api_key."""

    @pytest.mark.asyncio
    async def test_returns_immediately(self, tmp_path):
        """Test an existing key is returned without waiting."""
        (tmp_path / "config.xml").write_text(CONFIG_XML)

        assert await wait_for_api_key(tmp_path, poll_interval=10) == "k3yFromXml"

    @pytest.mark.asyncio
    async def test_waits_for_file(self, tmp_path):
        """Test the key is picked up once the daemon writes it."""

        async def write_later():
            await asyncio.sleep(0.05)
            (tmp_path / "config.xml").write_text(CONFIG_XML)

        writer = asyncio.create_task(write_later())
        api_key = await wait_for_api_key(tmp_path, poll_interval=0.01, timeout=5)
        await writer

        assert api_key == "k3yFromXml"

    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path):
        """Test the optional bound raises CredentialTimeoutError."""
        with pytest.raises(CredentialTimeoutError, match="No API key"):
            await wait_for_api_key(tmp_path, poll_interval=0.01, timeout=0.05)
