import pytest

from judge import file_manager


def test_create_workdir_is_unique(tmp_path):
    first = file_manager.create_workdir(tmp_path)
    second = file_manager.create_workdir(tmp_path)
    assert first != second
    assert first.parent == tmp_path
    assert first.name.startswith("judge_")


def test_write_source(tmp_path):
    path = file_manager.write_source(tmp_path, "solution.py", "print(1)")
    assert path.read_text() == "print(1)"


@pytest.mark.parametrize("name", ["", "../evil.py", "a/b.py"])
def test_write_source_rejects_paths(tmp_path, name):
    with pytest.raises(ValueError):
        file_manager.write_source(tmp_path, name, "x")


def test_case_input_lifecycle(tmp_path):
    name = file_manager.write_case_input(tmp_path, 3, "1 2\n")
    assert name == "input_3.txt"
    assert (tmp_path / name).read_text() == "1 2\n"
    file_manager.remove_case_input(tmp_path, 3)
    assert not (tmp_path / name).exists()
    # removing twice is fine
    file_manager.remove_case_input(tmp_path, 3)


def test_clean_data(tmp_path):
    workdir = file_manager.create_workdir(tmp_path)
    file_manager.write_source(workdir, "solution.py", "x")
    file_manager.clean_data(workdir)
    assert not workdir.exists()
    # already removed
    file_manager.clean_data(workdir)
