import json
import unittest

from codeplanner.errors import UpstreamFetchError, UpstreamProviderError
from codeplanner.models.catalog import ModelCatalog
from codeplanner.pipeline.loader import LoadLimits
from codeplanner.pipeline.orchestrator import LOAD_FAILED_WARNING, NO_FILES_WARNING, StandardPipeline
from codeplanner.pipeline.types import PipelineRequest, StageModel, empty_selection

from fakes import FakeLLM, FakeRepo


def _responder(keywords):
    def respond(provider, system, user, model_id):
        if user.startswith("Goal:"):
            return json.dumps({
                "improved_user_prompt": "Improved goal",
                "search": {"keywords": keywords, "max_files": 4},
            })
        if user.startswith("You are given independent reviews"):
            return "CONSOLIDATED"
        return f"review from {provider}"
    return respond


def _request(**overrides):
    fields = dict(
        repo="acme/shop",
        branch="main",
        system_prompt="You are a reviewer.",
        user_message="Fix the checkout modal",
        providers=("openai", "anthropic"),
        selected_models=empty_selection(),
        improver=StageModel("openai", None),
        consolidator=StageModel("anthropic", None),
    )
    fields.update(overrides)
    return PipelineRequest(**fields)


class StandardPipelineTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.catalog = ModelCatalog.from_config()
        self.frames = []

    async def test_full_run_emits_progress_then_result(self):
        repo = FakeRepo(files={
            "src/components/CheckoutModal.tsx": "export const Modal = 1;",
            "src/lib/checkout.ts": "export function pay() {}",
            "README.md": "readme",
        })
        llm = FakeLLM(_responder(["checkout", "modal"]))
        pipeline = StandardPipeline(llm, self.catalog, repo)
        result = await pipeline.run(_request(), self.frames.append)

        self.assertEqual(pipeline.state, "complete")
        stages = [f["data"]["stage"] for f in self.frames if f["type"] == "progress"]
        self.assertEqual(stages, ["improving", "searching", "loading", "running", "consolidating"])
        self.assertEqual(self.frames[-1]["type"], "result")
        self.assertEqual(sum(1 for f in self.frames if f["type"] in ("result", "error")), 1)

        self.assertEqual(result.consolidated, "CONSOLIDATED")
        self.assertEqual([r.provider for r in result.results], ["openai", "anthropic"])
        self.assertEqual(result.meta.selected_files, ("src/components/CheckoutModal.tsx", "src/lib/checkout.ts"))
        self.assertEqual(result.meta.keywords, ("checkout", "modal"))
        self.assertIsNone(result.meta.warning)
        self.assertEqual(result.meta.consolidator, StageModel("anthropic", "claude-sonnet-4-0"))
        self.assertEqual(result.meta.prompt_improver, StageModel("openai", "gpt-4o-mini"))

        run_calls = [c for c in llm.calls if c[2].startswith("Improved goal")]
        self.assertEqual(len(run_calls), 2)
        self.assertIn("// src/components/CheckoutModal.tsx\nexport const Modal = 1;", run_calls[0][2])
        self.assertEqual(self.frames[-1]["data"]["meta"]["selected_files"], list(result.meta.selected_files))

    async def test_zero_candidates_degrades_with_warning(self):
        repo = FakeRepo(files={"docs/intro.md": "hello"})
        llm = FakeLLM(_responder(["payments"]))
        result = await StandardPipeline(llm, self.catalog, repo).run(_request(), self.frames.append)

        self.assertEqual(result.meta.warning, NO_FILES_WARNING)
        self.assertTrue(result.consolidated)
        self.assertEqual(result.meta.selected_files, ())
        self.assertEqual(repo.fetched, [])
        run_calls = [c for c in llm.calls if c[2].startswith("Improved goal")]
        self.assertTrue(all(c[2] == "Improved goal" for c in run_calls))

    async def test_unloadable_candidates_degrade_with_other_warning(self):
        repo = FakeRepo(files={"src/payments.ts": "p" * 50}, failing_paths=("src/payments.ts",))
        result = await StandardPipeline(FakeLLM(_responder(["payments"])), self.catalog, repo).run(
            _request(), self.frames.append
        )
        self.assertEqual(result.meta.warning, LOAD_FAILED_WARNING)
        self.assertNotEqual(LOAD_FAILED_WARNING, NO_FILES_WARNING)

    async def test_candidates_capped_before_loading(self):
        repo = FakeRepo(files={f"src/widget{i}.ts": "w" for i in range(40)})
        limits = LoadLimits(max_candidates=5)
        await StandardPipeline(FakeLLM(_responder(["widget"])), self.catalog, repo, limits).run(_request())
        self.assertEqual(len(repo.fetched), 5)

    async def test_provider_failure_emits_error_frame_and_raises(self):
        def respond(provider, system, user, model_id):
            if provider == "anthropic" and user.startswith("Improved goal"):
                raise UpstreamProviderError("anthropic", "Anthropic error: 500 - upstream")
            return _responder(["checkout"])(provider, system, user, model_id)

        repo = FakeRepo(files={"checkout.ts": "x"})
        pipeline = StandardPipeline(FakeLLM(respond), self.catalog, repo)
        with self.assertRaises(UpstreamProviderError):
            await pipeline.run(_request(), self.frames.append)
        self.assertEqual(pipeline.state, "error")
        self.assertEqual(self.frames[-1], {"type": "error", "error": "Anthropic error: 500 - upstream"})
        self.assertFalse(any(f["type"] == "result" for f in self.frames))
        self.assertNotIn("consolidating", [f["data"]["stage"] for f in self.frames if f["type"] == "progress"])

    async def test_tree_failure_is_fatal(self):
        class NoTree(FakeRepo):
            async def get_tree(self, ref):
                raise UpstreamFetchError("GitHub error 404: Failed to fetch repository tree")

        with self.assertRaises(UpstreamFetchError):
            await StandardPipeline(FakeLLM(_responder(["x"])), self.catalog, NoTree()).run(
                _request(), self.frames.append
            )
        self.assertEqual(self.frames[-1]["type"], "error")

    async def test_instances_run_once(self):
        pipeline = StandardPipeline(FakeLLM(_responder(["x"])), self.catalog, FakeRepo())
        await pipeline.run(_request())
        with self.assertRaises(RuntimeError):
            await pipeline.run(_request())


if __name__ == "__main__":
    unittest.main()
