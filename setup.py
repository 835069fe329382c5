import os
from setuptools import setup, find_packages

project_name = 'configsync'

with open('VERSION') as v:
    project_version = v.read().strip()


def requirements():
    try:
        with open('requirements.txt') as f:
            return [line for line in f.read().splitlines() if line and not line.startswith('#')]
    except FileNotFoundError:
        print(os.path.abspath(os.curdir))
        print(os.listdir('.'))
        raise


def readme():
    with open('README') as f:
        return f.read()


setup(
    name=project_name,
    version=project_version,
    python_requires='>=3.11.0',
    packages=find_packages('src'),
    package_dir={'': 'src'},
    zip_safe=True,
    include_package_data=True,
    license='Apache-2.0',
    description='Sidecar that keeps local files in sync with an Apollo config service',
    long_description=readme(),
    long_description_content_type='text/markdown',
    entry_points={
        'console_scripts': [
            'configsync=configsync.server:main'
        ],
    },
    install_requires=requirements(),
    extras_require={
        'sentry': ['sentry-sdk'],
        'statsd': ['datadog'],
        'test': ['pytest', 'pytest-mock', 'httpx', 'datadog'],
    }
)
