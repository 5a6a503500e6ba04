import pytest

from chezmoi.vcs import get_vcs_info


def test_git_args():
    git = get_vcs_info("git")
    assert git.clone_args("repo", "dir") == ["clone", "repo", "dir"]
    assert git.init_args == ("init",)
    assert git.pull_args == ("pull", "--rebase")
    assert git.version_args == ("version",)


def test_hg_args():
    hg = get_vcs_info("hg")
    assert hg.clone_args("repo", "dir") == ["clone", "repo", "dir"]
    assert hg.pull_args == ("pull", "--rebase", "--update")


def test_git_version():
    git = get_vcs_info("git")
    assert git.parse_version("git version 2.20.1\n") == "2.20.1"
    assert git.parse_version("not git\n") is None


def test_hg_version():
    hg = get_vcs_info("hg")
    assert hg.parse_version("Mercurial Distributed SCM (version 4.9)\n") == "4.9"
    assert hg.parse_version("Mercurial Distributed SCM (version 4.9.1)\n") == "4.9.1"
    assert hg.parse_version("git version 2.20.1") is None


def test_unknown_vcs():
    with pytest.raises(ValueError):
        get_vcs_info("svn")