import unittest

from codeplanner.errors import InvalidScopeError, UpstreamFetchError
from codeplanner.pipeline.scope import (
    describe_scope,
    glob_to_regex,
    matches_glob,
    parse_scope,
    resolve_scope_files,
)
from codeplanner.pipeline.types import Scope

from fakes import FakeRepo


class ParseScopeTests(unittest.TestCase):
    def test_kinds(self):
        self.assertEqual(parse_scope("").kind, "empty")
        self.assertEqual(parse_scope("   ").kind, "empty")
        self.assertEqual(parse_scope(None).kind, "empty")
        self.assertEqual(parse_scope("12"), Scope(kind="commits", value="12", commit_count=12))
        self.assertEqual(parse_scope("src/**/*.ts").kind, "glob")
        self.assertEqual(parse_scope("file?.py").kind, "glob")
        self.assertEqual(parse_scope("src/lib/foo.ts"), Scope(kind="file", value="src/lib/foo.ts"))
        self.assertEqual(parse_scope("!!!").kind, "invalid")

    def test_non_canonical_numbers_are_not_commit_counts(self):
        self.assertEqual(parse_scope("0").kind, "invalid")
        self.assertEqual(parse_scope("007").kind, "invalid")
        self.assertEqual(parse_scope("-3").kind, "invalid")

    def test_extensionless_path_is_file(self):
        self.assertEqual(parse_scope("src/lib").kind, "file")
        self.assertEqual(parse_scope("Makefile").kind, "invalid")

    def test_trims_input(self):
        self.assertEqual(parse_scope("  3 ").commit_count, 3)

    def test_descriptions(self):
        self.assertEqual(describe_scope(parse_scope("")), "Review files changed in last commit")
        self.assertEqual(describe_scope(parse_scope("4")), "Review files changed in last 4 commit(s)")
        self.assertEqual(describe_scope(parse_scope("a/b.py")), "Review file: a/b.py")
        self.assertEqual(describe_scope(parse_scope("*.md")), "Review files matching: *.md")
        self.assertEqual(describe_scope(parse_scope("nope")), "Invalid scope: nope")


class GlobTests(unittest.TestCase):
    def test_double_star(self):
        self.assertTrue(matches_glob("src/components/Button.tsx", "src/**/*.tsx"))
        self.assertTrue(matches_glob("src/Button.tsx", "src/**/*.tsx"))
        self.assertFalse(matches_glob("lib/Button.tsx", "src/**/*.tsx"))

    def test_single_star_stays_in_segment(self):
        self.assertTrue(matches_glob("src/a.ts", "src/*.ts"))
        self.assertFalse(matches_glob("src/deep/a.ts", "src/*.ts"))

    def test_match_is_anchored_at_start_only(self):
        self.assertTrue(matches_glob("src/components/Button.tsx", "src/*"))
        self.assertTrue(matches_glob("src/lib/foo.ts", "src/li?"))
        self.assertFalse(matches_glob("app/src/a.ts", "src/*"))

    def test_question_mark(self):
        self.assertTrue(matches_glob("v1.txt", "v?.txt"))
        self.assertFalse(matches_glob("v10.txt", "v?.txt"))
        self.assertFalse(matches_glob("v/.txt", "v?.txt"))

    def test_leading_double_star_is_unanchored(self):
        self.assertTrue(matches_glob("a/b/c/foo.ts", "**/foo.ts"))
        self.assertTrue(matches_glob("foo.ts", "**/foo.ts"))
        self.assertFalse(matches_glob("a/barfoo.ts", "**/foo.ts"))

    def test_literal_characters_escaped(self):
        self.assertFalse(matches_glob("srcXa.ts", "src.a.ts"))
        self.assertTrue(glob_to_regex("a+b.ts").match("a+b.ts"))


class ResolveScopeTests(unittest.IsolatedAsyncioTestCase):
    async def test_file_scope(self):
        repo = FakeRepo()
        self.assertEqual(await resolve_scope_files(parse_scope("src/x.ts"), repo, "main"), ["src/x.ts"])

    async def test_glob_scope_filters_tree(self):
        repo = FakeRepo(files={"src/a.tsx": "", "src/b/c.tsx": "", "lib/d.tsx": "", "src/e.ts": ""},
                        extra_dirs=("src/z.tsx",))
        paths = await resolve_scope_files(parse_scope("src/**/*.tsx"), repo, "main")
        self.assertEqual(paths, ["src/a.tsx", "src/b/c.tsx"])

    async def test_directory_glob_selects_everything_below(self):
        repo = FakeRepo(files={"src/a.ts": "", "src/lib/b.ts": "", "docs/c.md": ""})
        paths = await resolve_scope_files(parse_scope("src/*"), repo, "main")
        self.assertEqual(paths, ["src/a.ts", "src/lib/b.ts"])

    async def test_commit_scope_unions_and_skips_removed(self):
        repo = FakeRepo(
            commits=["c1", "c2", "c3"],
            commit_files={
                "c1": [("a.ts", "modified"), ("gone.ts", "removed")],
                "c2": [("a.ts", "added"), ("b.ts", "added")],
                "c3": [("c.ts", "modified")],
            },
        )
        paths = await resolve_scope_files(parse_scope("2"), repo, "main")
        self.assertEqual(paths, ["a.ts", "b.ts"])

    async def test_empty_scope_means_last_commit(self):
        repo = FakeRepo(commits=["c1", "c2"], commit_files={"c1": [("a.ts", "modified")], "c2": [("b.ts", "added")]})
        self.assertEqual(await resolve_scope_files(parse_scope(""), repo, "main"), ["a.ts"])

    async def test_failed_commit_detail_yields_nothing_for_that_commit(self):
        repo = FakeRepo(
            commits=["c1", "c2"],
            commit_files={"c1": [("a.ts", "modified")], "c2": [("b.ts", "added")]},
            failing_commits=("c1",),
        )
        self.assertEqual(await resolve_scope_files(parse_scope("2"), repo, "main"), ["b.ts"])

    async def test_commit_details_fetched_in_batches(self):
        shas = [f"c{i}" for i in range(12)]
        repo = FakeRepo(commits=shas, commit_files={sha: [(f"{sha}.ts", "added")] for sha in shas})
        paths = await resolve_scope_files(parse_scope("12"), repo, "main", commit_batch_size=5)
        self.assertEqual(len(paths), 12)
        self.assertEqual(repo.detail_requests, shas)

    async def test_commit_listing_failure_propagates(self):
        class BrokenRepo(FakeRepo):
            async def list_commits(self, ref, count):
                raise UpstreamFetchError("GitHub error 500: Failed to list commits")

        with self.assertRaises(UpstreamFetchError):
            await resolve_scope_files(parse_scope("3"), BrokenRepo(), "main")

    async def test_invalid_scope_rejected(self):
        with self.assertRaises(InvalidScopeError):
            await resolve_scope_files(parse_scope("!!!"), FakeRepo(), "main")


if __name__ == "__main__":
    unittest.main()
