import pytest

from blogexport.feeds.transcoder import ERROR_DOCUMENT
from blogexport.main import main, parse_args
from conftest import rss_item_xml, rss_xml


def test_parse_args_subcommands():
    args = parse_args(["--log-level", "DEBUG", "aggregate", "https://example.blogspot.com", "-o", "feed.xml"])

    assert args.command == "aggregate"
    assert args.url == "https://example.blogspot.com"
    assert args.output == "feed.xml"
    assert args.log_level == "DEBUG"


def test_parse_args_requires_command():
    with pytest.raises(SystemExit):
        parse_args([])


def test_transcode_command_writes_document(tmp_path):
    source = tmp_path / "feed.xml"
    source.write_text(rss_xml([rss_item_xml(1)]), encoding="utf-8")
    output = tmp_path / "import.xml"

    assert main(["transcode", str(source), "-o", str(output)]) == 0

    document = output.read_text(encoding="utf-8")
    assert document.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "kind#post" in document


def test_transcode_command_fails_on_bad_input(tmp_path):
    source = tmp_path / "feed.xml"
    source.write_text("not a feed", encoding="utf-8")
    output = tmp_path / "import.xml"

    assert main(["transcode", str(source), "-o", str(output)]) == 1
    assert output.read_text(encoding="utf-8") == ERROR_DOCUMENT


def test_export_command_rejects_bad_url(tmp_path):
    assert main(["export", "http://example.com", "-o", str(tmp_path)]) == 1
    assert list(tmp_path.iterdir()) == []
