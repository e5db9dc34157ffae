"""Configuration loading and dispatch tests."""

from __future__ import annotations

import pytest

from PlatformKit.Bootstrap.cache import CacheBin, MemoryCacheProvider
from PlatformKit.Bootstrap.configuration import Configurable, Configuration, load_configuration
from PlatformKit.Bootstrap.errors import (
    ConfigurationError,
    ConfigurationFormatError,
    InvalidConfigurationError,
)


class Recorder:
    def __init__(self, *xpaths):
        self._xpaths = list(xpaths)
        self.matches = []

    def xpaths(self):
        return self._xpaths

    def match_configuration(self, xpath, data):
        self.matches.append((xpath, data))


class Rejecting(Recorder):
    def match_configuration(self, xpath, data):
        raise InvalidConfigurationError(f"{xpath}: unexpected value")


SITE_CONF = """
<configuration>
  <site name="demo">
    <title>Demo site</title>
  </site>
  <cache>
    <bin name="pages" provider="memory"/>
  </cache>
  <feature>a</feature>
  <feature>b</feature>
</configuration>
"""


def test_recorder_satisfies_protocol():
    assert isinstance(Recorder(), Configurable)
    assert isinstance(CacheBin(), Configurable)


def test_register_rejects_non_configurables():
    with pytest.raises(TypeError):
        Configuration().register(object())


def test_matched_elements_are_converted_and_dispatched():
    recorder = Recorder("site", "feature", "missing")
    configuration = Configuration()
    configuration.register(recorder)

    configuration.load_string(SITE_CONF, source="site.xml")

    assert recorder.matches == [
        ("site", {"@name": "demo", "title": "Demo site"}),
        ("feature", "a"),
        ("feature", "b"),
    ]
    assert configuration.sources == ["site.xml"]


def test_cache_bins_are_configured_from_documents():
    bins = CacheBin()
    configuration = Configuration()
    configuration.register(bins)

    configuration.load_string(SITE_CONF)

    assert bins.configured_bins() == ["pages"]
    assert isinstance(bins.create_cache("pages"), MemoryCacheProvider)


def test_components_are_dispatched_in_registration_order():
    order = []

    class Tracking(Recorder):
        def __init__(self, label):
            super().__init__("feature")
            self.label = label

        def match_configuration(self, xpath, data):
            order.append((self.label, data))

    configuration = Configuration()
    configuration.register(Tracking("first"))
    configuration.register(Tracking("second"))
    configuration.load_string(SITE_CONF)

    assert order == [("first", "a"), ("first", "b"), ("second", "a"), ("second", "b")]


@pytest.mark.parametrize(
    "text",
    ["<configuration><open></configuration>", "<settings/>", ""],
)
def test_malformed_documents_raise_format_error(text):
    with pytest.raises(ConfigurationFormatError) as excinfo:
        Configuration().load_string(text, source="bad.xml")

    assert excinfo.value.source == "bad.xml"


def test_component_rejection_names_the_source():
    configuration = Configuration()
    configuration.register(Rejecting("site"))

    with pytest.raises(InvalidConfigurationError, match="site.xml: site: unexpected value"):
        configuration.load_string(SITE_CONF, source="site.xml")
    assert configuration.sources == []


def test_invalid_xpath_is_a_configuration_error():
    configuration = Configuration()
    configuration.register(Recorder("site[@"))

    with pytest.raises(ConfigurationError, match="invalid XPath"):
        configuration.load_string(SITE_CONF)


def test_load_directory_reads_xml_files_in_sorted_order(tmp_path, write_file):
    write_file(tmp_path / "20-late.xml", "<configuration><feature>late</feature></configuration>")
    write_file(tmp_path / "10-early.xml", "<configuration><feature>early</feature></configuration>")
    write_file(tmp_path / "notes.txt", "<configuration><feature>ignored</feature></configuration>")
    recorder = Recorder("feature")

    configuration = load_configuration(tmp_path, [recorder])

    assert [data for _, data in recorder.matches] == ["early", "late"]
    assert configuration.sources == [str(tmp_path / "10-early.xml"), str(tmp_path / "20-late.xml")]


def test_load_directory_tolerates_missing_directory(tmp_path):
    assert Configuration().load_directory(tmp_path / "conf") == []


def test_load_file_reports_unreadable_files(tmp_path):
    with pytest.raises(ConfigurationError, match="Unable to read"):
        Configuration().load_file(tmp_path / "missing.xml")


def test_invalid_xpath_leaves_every_component_untouched():
    first = Recorder("site")
    configuration = Configuration()
    configuration.register(first)
    configuration.register(Recorder("feature[@"))

    with pytest.raises(ConfigurationError, match="invalid XPath"):
        configuration.load_string(SITE_CONF)

    assert first.matches == []
    assert configuration.sources == []


def test_rejected_document_is_not_recorded_as_a_source():
    first = Recorder("site")
    configuration = Configuration()
    configuration.register(first)
    configuration.register(Rejecting("feature"))

    with pytest.raises(InvalidConfigurationError, match="site.xml: feature"):
        configuration.load_string(SITE_CONF, source="site.xml")

    # Dispatch is not transactional; components before the rejecting one keep their data.
    assert [xpath for xpath, _ in first.matches] == ["site"]
    assert configuration.sources == []
