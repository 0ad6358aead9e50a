"""Tests for pipeline parser."""

import pytest
from controller.src.models.pipeline import Block, LiteralEnv, SecretEnv, Step, Wait
from controller.src.services.pipeline_parser import (
    parse_pipeline_config,
    parse_pipeline_dict,
    PipelineConfigError,
)

def test_valid_pipeline():
    config = """
steps:
  - name: Build
    image: node:18
    commands:
      - npm install
      - npm run build
  - name: Test
    image: node:18
    commands:
      - npm test
"""
    result = parse_pipeline_config(config)
    assert len(result.steps) == 2
    assert result.steps[0].name == "Build"
    assert result.steps[0].commands == ["npm install", "npm run build"]
    assert result.steps[1].image == "node:18"

def test_wait_and_block_nodes():
    config = """
steps:
  - name: Build
    image: alpine
  - wait
  - block: Release to production
    branch: master
  - name: Deploy
    image: alpine
    args: ["--prod"]
"""
    result = parse_pipeline_config(config)

    build, wait, block, deploy = result.steps
    assert isinstance(build, Step)
    assert isinstance(wait, Wait)
    assert isinstance(block, Block)
    assert block.name == "Release to production"
    assert block.branch == "master"
    assert isinstance(deploy, Step)
    assert deploy.args == ["--prod"]
    assert deploy.commands is None

def test_env_and_secrets():
    config = """
steps:
  - name: Publish
    image: alpine
    branch: "!hotfix"
    env:
      - name: DEBUG
        value: true
      - name: RETRIES
        value: 3
      - name: TOKEN
        valueFrom:
          secretKeyRef:
            name: registry
            key: token
    mountSecret:
      - name: registry
        mountPath: /secrets/registry
"""
    step = parse_pipeline_config(config).steps[0]

    assert step.branch == "!hotfix"
    assert step.env == [
        LiteralEnv(name="DEBUG", value="true"),
        LiteralEnv(name="RETRIES", value="3"),
        SecretEnv(name="TOKEN", secret_name="registry", secret_key="token"),
    ]
    assert step.mount_secrets[0].name == "registry"
    assert step.mount_secrets[0].mount_path == "/secrets/registry"

def test_missing_steps():
    config = """
name: Bad Pipeline
"""
    with pytest.raises(PipelineConfigError, match="must have 'steps'"):
        parse_pipeline_config(config)

def test_empty_steps():
    # Nothing to run is a finished pipeline, not an error
    result = parse_pipeline_config("steps: []")
    assert result.steps == []

def test_missing_step_name():
    config = """
steps:
  - image: node:18
    commands:
      - npm install
"""
    with pytest.raises(PipelineConfigError, match="missing 'name'"):
        parse_pipeline_config(config)

def test_missing_step_image():
    config = """
steps:
  - name: Build
    commands:
      - npm install
"""
    with pytest.raises(PipelineConfigError, match="missing 'image'"):
        parse_pipeline_config(config)

def test_unknown_node_shape():
    config = """
steps:
  - name: Build
    image: alpine
  - sleep
"""
    with pytest.raises(PipelineConfigError, match="Step 1"):
        parse_pipeline_config(config)

def test_env_without_value():
    config = """
steps:
  - name: Build
    image: alpine
    env:
      - name: TOKEN
"""
    with pytest.raises(PipelineConfigError, match="secretKeyRef"):
        parse_pipeline_config(config)

def test_scalar_value_from():
    config = """
steps:
  - name: Build
    image: alpine
    env:
      - name: TOKEN
        valueFrom: oops
"""
    with pytest.raises(PipelineConfigError, match="Step 0 env 0"):
        parse_pipeline_config(config)

def test_invalid_yaml():
    with pytest.raises(PipelineConfigError, match="Invalid YAML"):
        parse_pipeline_config("steps: [unclosed")

def test_empty_config():
    with pytest.raises(PipelineConfigError, match="Empty"):
        parse_pipeline_config("")

def test_dict_parsing():
    config = {
        "steps": [
            {"name": "Step 1", "image": "alpine", "commands": ["echo hello"]}
        ]
    }
    result = parse_pipeline_dict(config)
    assert len(result.steps) == 1
    assert result.steps[0].name == "Step 1"
