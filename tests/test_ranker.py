import unittest

from codeplanner.pipeline.ranker import rank_files, score_path
from codeplanner.pipeline.types import TreeEntry


def _tree(*paths, dirs=()):
    return [TreeEntry(path=d, type="dir") for d in dirs] + [TreeEntry(path=p, type="file") for p in paths]


class ScorePathTests(unittest.TestCase):
    def test_filename_match_with_tsx_bonus(self):
        self.assertEqual(score_path("src/components/Modal.tsx", ["modal"]), 10)

    def test_path_match_scores_less_than_filename(self):
        self.assertEqual(score_path("src/modal/index.ts", ["modal"]), 4)

    def test_node_modules_penalty(self):
        self.assertLessEqual(score_path("node_modules/foo/bar.ts", ["bar"]), 0)
        self.assertLessEqual(score_path("web/.next/server/page.js", ["page"]), 0)

    def test_api_and_auth_bonuses(self):
        self.assertEqual(score_path("app/api/users.ts", ["route", "users"]), 8 + 2)
        self.assertEqual(score_path("lib/auth/session.ts", ["login", "session"]), 8 + 2)

    def test_lock_penalty(self):
        self.assertEqual(score_path("yarn.lock", ["yarn"]), 8 - 5)

    def test_deterministic(self):
        keywords = ["button", "ui"]
        self.assertEqual(
            score_path("src/ui/Button.jsx", keywords),
            score_path("src/ui/Button.jsx", keywords),
        )


class RankFilesTests(unittest.TestCase):
    def test_excludes_non_positive_and_dirs(self):
        tree = _tree("src/modal.ts", "node_modules/modal/index.js", "README.md", dirs=("src/modal",))
        self.assertEqual(rank_files(tree, ["modal"], 12), ["src/modal.ts"])

    def test_sorted_by_score_with_stable_ties(self):
        tree = _tree("a/modal/x.ts", "b/Modal.tsx", "c/modal/y.ts", "d/modal.ts")
        ranked = rank_files(tree, ["modal"], 12)
        self.assertEqual(ranked, ["b/Modal.tsx", "d/modal.ts", "a/modal/x.ts", "c/modal/y.ts"])

    def test_limit_is_max_of_double_and_twenty(self):
        tree = _tree(*[f"src/widget{i}.ts" for i in range(60)])
        self.assertEqual(len(rank_files(tree, ["widget"], 4)), 20)
        self.assertEqual(len(rank_files(tree, ["widget"], 25)), 50)
        for max_files in (1, 12, 30):
            ranked = rank_files(tree, ["widget"], max_files)
            self.assertLessEqual(len(ranked), max(max_files * 2, 20))

    def test_no_keywords_no_results(self):
        self.assertEqual(rank_files(_tree("src/a.ts"), [], 12), [])


if __name__ == "__main__":
    unittest.main()
