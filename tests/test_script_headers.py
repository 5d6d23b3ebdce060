import ast
import re
import tomllib
import unittest
from pathlib import Path

PROJECT_ROOT: Path = Path(__file__).parent.parent
SCRIPTS: tuple[str, ...] = (
    'collect_judgement_links.py',
    'filter_judgement_links.py',
    'scrape_judgements.py',
    'verify_and_recover.py',
)
## import name -> distribution name
THIRD_PARTY: dict[str, str] = {
    'bs4': 'beautifulsoup4',
    'httpx': 'httpx',
    'humanize': 'humanize',
    'tqdm': 'tqdm',
}
HEADER_PATTERN = re.compile(r'(?m)^# /// script$\s(?P<content>(^#(| .*)$\s)+)^# ///$')


def header_dependencies(script: Path) -> set[str]:
    """
    Reads the inline `# /// script` metadata block and returns the bare dependency names.
    """
    match = HEADER_PATTERN.search(script.read_text(encoding='utf-8'))
    assert match is not None, f'no script header in {script.name}'
    content: str = ''.join(
        line[2:] if line.startswith('# ') else line[1:] for line in match.group('content').splitlines(keepends=True)
    )
    dependencies: list[str] = tomllib.loads(content).get('dependencies', [])
    return {re.split(r'[\s<>=~!@\[;]', dep, maxsplit=1)[0] for dep in dependencies}


def imported_distributions(module_path: Path, seen: set[str] | None = None) -> set[str]:
    """
    Returns the third-party distributions a module needs, following imports of sibling project modules.
    """
    seen = seen if seen is not None else set()
    if module_path.stem in seen:
        return set()
    seen.add(module_path.stem)
    names: set[str] = set()
    for node in ast.walk(ast.parse(module_path.read_text(encoding='utf-8'))):
        if isinstance(node, ast.Import):
            names.update(alias.name.split('.')[0] for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
            names.add(node.module.split('.')[0])
    needed: set[str] = {THIRD_PARTY[name] for name in names if name in THIRD_PARTY}
    for name in names:
        sibling: Path = PROJECT_ROOT / f'{name}.py'
        if sibling.exists():
            needed |= imported_distributions(sibling, seen)
    return needed


class TestScriptHeaders(unittest.TestCase):
    """
    Tests that each runnable script's inline metadata lists everything it ends up importing.
    """

    def test_headers_cover_transitive_imports(self) -> None:
        for script in SCRIPTS:
            with self.subTest(script=script):
                computed: set[str] = header_dependencies(PROJECT_ROOT / script)
                expected: set[str] = imported_distributions(PROJECT_ROOT / script)
                self.assertTrue(expected <= computed, f'missing from header: {sorted(expected - computed)}')

    def test_link_collector_header(self) -> None:
        computed: set[str] = header_dependencies(PROJECT_ROOT / 'collect_judgement_links.py')
        self.assertEqual(computed, {'beautifulsoup4', 'httpx', 'humanize', 'tqdm'})


if __name__ == '__main__':
    unittest.main()
