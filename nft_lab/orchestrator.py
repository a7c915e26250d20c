from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .catalog import AttributeCatalog
from .compositor import CompositeError, LayerCompositor
from .config import Config, ConfigError, load_config
from .generator import CombinationGenerator, GenerationError
from .logging_utils import (
    RunLogger,
    attach_library_logging,
    create_logger,
    detach_library_logging,
)
from .metadata import ItemNaming, build_metadata, save_collection, save_item_metadata
from .pinning import Pinner, PinningError, create_pinner
from .rng import DeterministicRNG
from .rules import RuleSet, load_rules

CHECKLIST = (
    "Ensure all paths in the config file are correct and accessible.",
    "Verify that all required attribute folders exist and contain image files.",
    "Check that the rules file is consistent with your attribute structure.",
    "Make sure you have the necessary permissions to read/write in the specified directories.",
)


@dataclass
class RunResult:
    combinations: List[Dict[str, str]]
    records: List[dict] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    collection_path: Optional[Path] = None


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a layered NFT collection from attribute folders")
    parser.add_argument("--config", type=Path, default=Path("config.json"), help="Path to the config file")
    parser.add_argument("--rules", type=Path, default=Path("rules.json"), help="Path to the rules file")
    return parser.parse_args(argv)


def create_nfts(
    config: Config,
    combinations: Sequence[Dict[str, str]],
    compositor: LayerCompositor,
    pinner: Pinner,
    logger: RunLogger,
) -> RunResult:
    result = RunResult(combinations=list(combinations))
    total = len(combinations)
    for index, combination in enumerate(combinations, start=1):
        naming = ItemNaming(config.nft_prefix, index)
        image_path = config.images_dir / naming.image_filename
        try:
            image_bytes = compositor.render_png(combination)
            image_path.write_bytes(image_bytes)
        except (CompositeError, OSError) as exc:
            logger.item("CREATE", index, total, naming.asset_name, f"failed: {exc}", level="ERROR")
            result.failed.append(naming.asset_name)
            continue

        try:
            image_uri: Optional[str] = pinner.upload(image_path)
        except PinningError as exc:
            logger.item("UPLOAD", index, total, naming.asset_name, f"failed: {exc}", level="ERROR")
            image_uri = None

        record = build_metadata(naming, config.policy_id, combination, image_uri)
        try:
            save_item_metadata(config.metadata_dir, naming, record)
        except OSError as exc:
            logger.item("SAVE", index, total, naming.asset_name, f"metadata failed: {exc}", level="ERROR")
            result.failed.append(naming.asset_name)
            continue
        result.records.append(record)
        logger.item("CREATE", index, total, naming.asset_name, f"-> {image_uri or '<no image uri>'}")
    return result


def run(
    config: Config,
    rules: RuleSet,
    logger: RunLogger,
    *,
    rng: Optional[DeterministicRNG] = None,
) -> RunResult:
    with logger.phase("SETUP", f"output={config.output_folder}") as phase:
        for directory in (config.images_dir, config.metadata_dir):
            directory.mkdir(parents=True, exist_ok=True)
        pinner = create_pinner(config.pinning)
        catalog = AttributeCatalog.load(
            config.attributes_folders,
            extra_categories=(*rules.optional_items, *rules.mandatory_items),
        )
        phase.done(f"{len(catalog.categories())} categories, pinning={type(pinner).__name__}")

    generator = CombinationGenerator(
        catalog,
        rules,
        rng=rng or DeterministicRNG(config.seed),
        settings=config.generation,
    )
    with logger.phase("GENERATE", f"target={config.nft_count}") as phase:
        combinations = generator.generate(config.nft_count)
        phase.done(f"generated {len(combinations)} valid combinations ({generator.stats.summary()})")

    compositor = LayerCompositor(catalog, config.image_size)
    with logger.phase("CREATE", "creating NFTs, uploading to IPFS and saving metadata") as phase:
        result = create_nfts(config, combinations, compositor, pinner, logger)
        phase.done(f"{len(result.records)}/{len(combinations)} items written")

    with logger.phase("SAVE") as phase:
        result.collection_path = save_collection(config.metadata_dir, result.records)
        phase.done(f"collection of {len(result.records)} records -> {result.collection_path}")
    if result.failed:
        logger.log("SAVE", f"{len(result.failed)} items failed: {', '.join(result.failed)}", level="WARN")
    return result


def _report_fatal(logger: RunLogger, exc: Exception) -> None:
    logger.log("FATAL", str(exc), level="ERROR")
    logger.log("FATAL", "Please check the following:", level="ERROR")
    for number, item in enumerate(CHECKLIST, start=1):
        logger.log("FATAL", f"{number}. {item}", level="ERROR")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        _report_fatal(create_logger("INFO", None), exc)
        return 1

    logfile = config.output_folder / "log.txt" if config.logging.to_file else None
    try:
        logger = create_logger(config.logging.level, logfile)
    except OSError as exc:
        _report_fatal(create_logger(config.logging.level, None), exc)
        return 1

    handler = attach_library_logging(logger)
    try:
        logger.log("BOOT", f"config={config.path} rules={args.rules.resolve()} count={config.nft_count}")
        rules = load_rules(args.rules)
        run(config, rules, logger)
        logger.log("DONE", "NFT generation completed successfully")
        return 0
    except (ConfigError, GenerationError, OSError) as exc:
        _report_fatal(logger, exc)
        return 1
    finally:
        detach_library_logging(handler)
        logger.close()


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
