from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from gitrepo import git, requires_git

from gllm_export.exceptions import GitCommandError, NotAGitRepositoryError
from gllm_export.git import GitProvider

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_mock import MockerFixture

pytestmark = [pytest.mark.integration, pytest.mark.asyncio, requires_git]


async def test_identity(git_repo: Path) -> None:
    identity = await GitProvider(git_repo).identity()

    assert identity.name == "demo"
    assert identity.top_level == str(git_repo.resolve())
    assert sorted(identity.branches) == ["feature/login", "main"]
    assert identity.tags == ["v1.0"]


async def test_branch_commits_are_newest_first_and_capped(git_repo: Path) -> None:
    head = git(git_repo, "rev-parse", "HEAD")
    root = git(git_repo, "rev-parse", "HEAD~1")
    provider = GitProvider(git_repo)

    assert await provider.branch_commits("main", 30) == [head, root]
    assert await provider.branch_commits("feature/login", 1) == [head]


async def test_unknown_branch_fails(git_repo: Path) -> None:
    with pytest.raises(GitCommandError):
        await GitProvider(git_repo).branch_commits("does-not-exist", 5)


async def test_commit_meta(git_repo: Path) -> None:
    head = git(git_repo, "rev-parse", "HEAD")
    root = git(git_repo, "rev-parse", "HEAD~1")
    provider = GitProvider(git_repo)

    info = await provider.commit_meta(head)
    root_info = await provider.commit_meta(root)

    assert info.sha == head
    assert info.author_name == "Test User"
    assert info.author_email == "test@example.com"
    assert info.message == "Add config\n\nWith details."
    assert info.summary == "Add config"
    assert info.parents == [root]
    assert info.date
    assert root_info.parents == []


async def test_commit_diff(git_repo: Path) -> None:
    provider = GitProvider(git_repo)

    diff = await provider.commit_diff(git(git_repo, "rev-parse", "HEAD"))
    root_diff = await provider.commit_diff(git(git_repo, "rev-parse", "HEAD~1"))

    assert "+print('hello world')" in diff
    assert "-print('hello')" in diff
    assert "config.env" in diff
    assert "+print('hello')" in root_diff


async def test_tree_and_blobs(git_repo: Path) -> None:
    head = git(git_repo, "rev-parse", "HEAD")
    provider = GitProvider(git_repo)
    text = "print('hello world')\n"

    assert await provider.tree_files(head) == ["app.py", "config.env", "logo.bin"]
    assert await provider.blob_size(head, "app.py") == len(text)
    assert await provider.blob_size(head, "missing.txt") is None
    assert await provider.blob_content(head, "app.py", 1000) == text
    assert await provider.blob_content(head, "app.py", 5) is None
    assert await provider.blob_content(head, "logo.bin", 1000) is None


async def test_not_a_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    plain = tmp_path / "plain"
    plain.mkdir()

    with pytest.raises(NotAGitRepositoryError):
        await GitProvider(plain).identity()


async def test_missing_git_binary(git_repo: Path) -> None:
    with pytest.raises(GitCommandError, match="Command failed"):
        await GitProvider(git_repo, git_bin="git-does-not-exist").branches()


async def test_blob_content_reads_the_blob_once(git_repo: Path, mocker: MockerFixture) -> None:
    head = git(git_repo, "rev-parse", "HEAD")
    provider = GitProvider(git_repo)
    run = mocker.spy(provider, "_run")

    assert await provider.blob_content(head, "app.py", 1000) == "print('hello world')\n"
    assert await provider.blob_content(head, "missing.txt", 1000) is None

    assert [call.args[0] for call in run.call_args_list] == ["cat-file", "cat-file"]
    assert [call.args[1] for call in run.call_args_list] == ["blob", "blob"]
