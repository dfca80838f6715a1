# setup.py
from setuptools import setup, find_packages

setup(
    name="chatedit-project",
    version="0.1.0",
    description="A CLI tool that applies, stages and undoes file changes proposed by LLM responses, composed of the chatedit app and the chatpatch engine library.",
    author="Your Name or Team",
    author_email="your_email@example.com",
    # 两个顶级包: chatedit (CLI 应用) 和 chatpatch (解析/补丁/暂存/撤销引擎)
    packages=find_packages(include=['chatedit', 'chatedit.*', 'chatpatch', 'chatpatch.*']),

    include_package_data=True,
    package_data={
        'chatedit': ['templates/*.j2', 'templates/prompts/*.j2'],
    },
    install_requires=[
        "click>=8.0",
        "pyyaml",
        "jinja2",
        "rich",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'chatedit = chatedit.cli:cli',
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Build Tools",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
