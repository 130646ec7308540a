"""Unit tests for query and command text helpers"""

import pytest

from nl2cli.utils.command_text import (
    command_tokens,
    extract_command,
    normalize_query,
    query_words,
)


def test_normalize_query():
    assert normalize_query("  List   MY\tDatabases \n") == "list my databases"
    assert normalize_query("   ") == ""


def test_query_words_ignore_punctuation():
    assert query_words("List my S3-buckets, please!") == {"list", "my", "s3-buckets", "please"}
    assert query_words("") == set()


def test_command_tokens():
    assert command_tokens("  aws  s3 ls ") == ["aws", "s3", "ls"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("aws s3 ls", "aws s3 ls"),
        ("  aws s3 ls  \n", "aws s3 ls"),
        ("```bash\naws s3 ls\n```", "aws s3 ls"),
        ("```\ngcloud compute instances list\n```\nThis lists VMs.", "gcloud compute instances list"),
        ("Answer: az vm list", "az vm list"),
        ("Command: govc ls /dc/vm", "govc ls /dc/vm"),
        ("$ ibmcloud resource groups", "ibmcloud resource groups"),
        ("`az group list`", "az group list"),
        ("aws s3 ls\nQuery: list my vms\nCommand: aws ec2 describe-instances", "aws s3 ls"),
    ],
)
def test_extract_command(raw, expected):
    assert extract_command(raw) == expected


def test_extract_command_prefers_expected_executable():
    raw = "Here is the command you need:\naws ec2 describe-instances\nRun it in a shell."

    assert extract_command(raw, "aws") == "aws ec2 describe-instances"
    assert extract_command(raw) == "Here is the command you need:"


def test_extract_command_falls_back_to_first_line():
    assert extract_command("gsutil ls\nsomething else", "aws") == "gsutil ls"


@pytest.mark.parametrize("raw", ["", "   \n  ", "```\n```", "Query: list buckets"])
def test_extract_command_without_content(raw):
    assert extract_command(raw) == ""
