from setuptools import setup

setup(
    name='isobox',
    version='20261019',
    description='Decoding of ISO base media box records from in-memory bytes.',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    keywords=['python3'],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Topic :: Multimedia :: Video",
    ],
    package_dir={'': 'lib/python'},
    packages=['isobox'],
    python_requires='>=3.8',
    install_requires=[
        'cs.binary',
        'cs.buffer',
        'cs.deco',
        'cs.logutils',
        'cs.pfx',
        'cs.threads',
        'icontract',
        'typeguard>=4',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
