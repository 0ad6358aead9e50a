"""
Pipeline service - starts pipeline sections.

Fetches the pipeline file for a commit, sections it for the branch, creates
the check runs of the requested section and submits its Pod. Safe to call
more than once for the same section.
"""

import logging
from typing import Any, Dict, List, Optional

from controller.src.config import Settings
from controller.src.k8s.client import PodClient
from controller.src.k8s.pod_builder import ScheduledStep, build_pod, build_pod_name
from controller.src.models.pipeline import BlockSection, StepsSection
from controller.src.services.github import GithubGateway, InstallationGateway
from controller.src.services.pipeline_parser import parse_pipeline_config
from controller.src.services.sectioner import build_sections, select_section

logger = logging.getLogger(__name__)

class PipelineService:
    def __init__(self, github: GithubGateway, pods: PodClient, settings: Settings):
        self.github = github
        self.pods = pods
        self.settings = settings

    async def start_section(
        self,
        installation_id: int,
        repo_full_name: str,
        commit_sha: str,
        branch: str,
        previous_section_index: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Start the section after `previous_section_index`, or the first one."""
        section_index = 0 if previous_section_index is None else previous_section_index + 1

        return await self.run_section(
            installation_id=installation_id,
            repo_full_name=repo_full_name,
            commit_sha=commit_sha,
            branch=branch,
            section_index=section_index,
        )

    async def run_section(
        self,
        installation_id: int,
        repo_full_name: str,
        commit_sha: str,
        branch: str,
        section_index: int,
    ) -> Dict[str, Any]:
        """Start the section at `section_index` of a commit's pipeline."""
        installation = await self.github.installation(installation_id, repo_full_name)

        raw_pipeline = await installation.get_pipeline_file(commit_sha)
        if raw_pipeline is None:
            logger.info(f"No pipeline file found in {repo_full_name}@{commit_sha}")
            return {"status": "skipped", "reason": "No pipeline file found"}

        pipeline = parse_pipeline_config(raw_pipeline)
        section = select_section(build_sections(pipeline.steps, branch), section_index)

        if section is None:
            logger.info(f"Pipeline for {repo_full_name}@{commit_sha} has no section {section_index} left to run")
            return {"status": "finished", "section": section_index}

        if isinstance(section, BlockSection):
            # A redelivered event must not add a second gate to the commit
            check_run_id = await installation.find_check_run(section.block.name, commit_sha)
            if check_run_id is None:
                check_run_id = await installation.create_block_check_run(
                    section.block.name,
                    commit_sha,
                    section_index + 1,
                )
            logger.info(f"Pipeline for {repo_full_name}@{commit_sha} blocked at section {section_index}")
            return {"status": "blocked", "section": section_index, "check_run": check_run_id}

        return await self._start_steps(
            installation,
            section,
            installation_id=installation_id,
            repo_full_name=repo_full_name,
            commit_sha=commit_sha,
            branch=branch,
            section_index=section_index,
        )

    async def _start_steps(
        self,
        installation: InstallationGateway,
        section: StepsSection,
        installation_id: int,
        repo_full_name: str,
        commit_sha: str,
        branch: str,
        section_index: int,
    ) -> Dict[str, Any]:
        pod_name = build_pod_name(commit_sha, section_index)

        # Re-entry for a section whose Pod is already up must not duplicate check runs
        if await self.pods.get_pod(pod_name) is not None:
            logger.info(f"Pod {pod_name} already exists, section {section_index} is running")
            return {"status": "running", "section": section_index, "pod": pod_name}

        scheduled: List[ScheduledStep] = []
        for step in section.steps:
            check_run_id = await installation.create_check_run(step.name, commit_sha)
            scheduled.append(ScheduledStep(step=step, check_run_id=check_run_id))

        pod = build_pod(
            scheduled,
            commit_sha=commit_sha,
            repo_full_name=repo_full_name,
            namespace=self.settings.namespace,
            branch=branch,
            installation_id=installation_id,
            section_index=section_index,
            service_account=self.settings.service_account,
            git_checkout_image=self.settings.git_checkout_image,
            app_label=self.settings.app_label,
            clone_base_url=self.settings.github_clone_base_url,
        )

        logger.info(f"Creating pod {pod_name} with {len(scheduled)} step(s)")
        await self.pods.create_pod(pod)

        return {
            "status": "started",
            "section": section_index,
            "pod": pod_name,
            "check_runs": [s.check_run_id for s in scheduled],
        }
