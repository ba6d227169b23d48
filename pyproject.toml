[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "inferno"
version = "0.1.0"
description = "Cost-optimal allocation of accelerators to LLM inference servers under service-level objectives"
requires-python = ">=3.10"
keywords = [
    "inference",
    "llm",
    "autoscaling",
    "accelerator",
    "gpu",
    "optimization",
    "queueing",
    "capacity-planning",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: Scientific/Engineering :: Mathematics",
]
dependencies = [
    "flask>=2.2",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
    "responses>=0.23",
]

[project.scripts]
inferno-optimizer = "inferno.api:main"
inferno-generate-models = "inferno.generators:main"
inferno-demo = "inferno.demo:main"

[tool.hatch.build.targets.wheel]
packages = ["inferno"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
