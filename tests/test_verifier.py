"""
Parity Verifier Tests
=====================
Source-level feature checks against small generated trees on disk.
"""
import asyncio
import os

from cloneforge.agents.verifier import ParityVerifier, keyword_score
from cloneforge.core.constants import FEATURE_WEIGHTS

from conftest import make_analysis


def _write(root, rel, content):
    path = os.path.join(root, rel)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


FULL_PAGE = """
export default function Page() {
  const mockPages = [{ id: 1 }];
  const [query, setQuery] = useState("");
  const [isLoading, setLoading] = useState(false);
  async function onSubmit() {
    try { await fetch("/api/pages", { method: "PUT" }); } catch (error) { setError(error); }
    if (confirm("Delete?")) await fetch("/api/pages/1", { method: "DELETE" });
  }
  return (
    <section className="sm:p-4 md:p-8 lg:p-12 animate-pulse">
      <header><nav><Link href="/pages">Pages</Link></nav></header>
      <h1 className="hero">Get Started</h1>
      <form onSubmit={onSubmit}><input defaultValue="edit" /><button>Search</button></form>
      {mockPages.length === 0 && <p>No pages yet, empty</p>}
      <footer>filter sample seed search loading Mock Edit delete no results @media</footer>
    </section>
  );
}
"""


def _full_project(root, analysis):
    _write(root, "apps/web/src/app/page.tsx", FULL_PAGE)
    for entity in analysis.entities:
        _write(root, f"apps/web/src/app/{entity.slug}/page.tsx", FULL_PAGE)
        _write(root, f"apps/web/src/app/{entity.slug}/[id]/page.tsx", FULL_PAGE)
    _write(root, "apps/api/src/routes/page.ts", "export async function routes() {}")


def test_keyword_score():
    assert keyword_score("<form onSubmit>", ["<form", "onSubmit", "<input", "<button"]) == 50.0
    assert keyword_score("anything", []) == 0.0


def test_empty_project_scores_zero_and_fails(tmp_path):
    report = asyncio.run(ParityVerifier().check_parity(make_analysis(), str(tmp_path)))

    assert report.overall == 0
    assert report.passes_threshold is False
    assert set(report.missing_features) == set(FEATURE_WEIGHTS)
    assert len(report.recommendations) == 5
    # heaviest missing features first
    assert report.recommendations[0].startswith("Add a landing page")


def test_complete_project_passes(tmp_path):
    analysis = make_analysis()
    _full_project(str(tmp_path), analysis)

    report = asyncio.run(ParityVerifier().check_parity(analysis, str(tmp_path)))

    assert report.kind == "pre_deploy"
    assert report.overall >= 90
    assert report.passes_threshold is True
    assert report.missing_features == []
    assert report.recommendations == ["All core features implemented!"]
    assert report.target_name == "Notion"


def test_missing_entity_pages_reduce_coverage(tmp_path):
    analysis = make_analysis()
    _full_project(str(tmp_path), analysis)
    os.remove(os.path.join(str(tmp_path), "apps/web/src/app/workspaces/[id]/page.tsx"))

    report = asyncio.run(ParityVerifier().check_parity(analysis, str(tmp_path)))

    detail = next(c for c in report.feature_checks if c.feature == "detail_view")
    assert detail.score == 50.0
    assert detail.implemented is False
    assert "detail_view" in report.missing_features


def test_threshold_is_configurable(tmp_path):
    analysis = make_analysis()
    _write(str(tmp_path), "apps/web/src/app/page.tsx", "<nav><header><Link href='/'>x</Link></header></nav>")
    strict = asyncio.run(ParityVerifier(threshold=100).check_parity(analysis, str(tmp_path)))
    lenient = asyncio.run(ParityVerifier(threshold=1).check_parity(analysis, str(tmp_path)))
    assert strict.overall == lenient.overall
    assert not strict.passes_threshold
    assert lenient.passes_threshold
