"""Command-line interface for Japanese receipt field extraction."""

import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
from tqdm import tqdm

from .config import ExtractionConfig
from .extractor import ReceiptDataExtractor
from .hashing import file_hash, fragments_fingerprint
from .models import OCRResult, ReceiptData
from .normalization import ReceiptNormalizer
from .parsers.date_normalizer import DateNormalizer
from .review import ReviewQueue

# Set up logging on stderr; stdout carries JSON results
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stderr)
    ]
)
logger = logging.getLogger(__name__)


def load_fragments(ocr_path: Path) -> List[OCRResult]:
    """
    Load OCR fragments from a JSON file.

    Accepts either a list of fragments or an object with a "fragments" list.
    """
    with open(ocr_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get('fragments', [])
    if not isinstance(data, list):
        raise ValueError(f"{ocr_path} must contain a list of OCR fragments")

    return [OCRResult.from_dict(item) for item in data]


def load_receipt(receipt_path: Path) -> ReceiptData:
    """Load a receipt written by the extract command, or a bare ReceiptData dict."""
    with open(receipt_path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return ReceiptData.from_dict(data.get('receipt', data))


def write_json(payload: Dict[str, Any], output_path: Optional[Path]):
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if output_path is None:
        click.echo(text)
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text + "\n", encoding='utf-8')
    logger.info(f"Wrote {output_path}")


class ReceiptProcessor:
    """Runs extraction, normalization and review flagging for OCR files."""

    def __init__(self, config: ExtractionConfig, max_workers: int = 4):
        self.config = config
        self.max_workers = max_workers
        self.extractor = ReceiptDataExtractor(config)
        self.normalizer = ReceiptNormalizer(
            config,
            date_normalizer=self.extractor.normalizer,
            usage_classifier=self.extractor.usage_classifier,
        )
        self.review_queue = ReviewQueue(
            confidence_threshold=config.confidence_threshold,
            fallback_usage=self.extractor.usage_classifier.fallback,
        )
        self.stats = {
            'total_files': 0,
            'processed': 0,
            'failed': 0,
            'review_items': 0,
        }

    def process_file(self, ocr_path: Path, image_path: Optional[Path] = None) -> Dict[str, Any]:
        """
        Extract one receipt from an OCR JSON file.

        Args:
            ocr_path: OCR fragments JSON
            image_path: Source image; its MD5 becomes the image hash

        Returns:
            Dictionary with the receipt, its normalized record and review reasons
        """
        fragments = load_fragments(ocr_path)
        image_hash = file_hash(image_path) if image_path else fragments_fingerprint(fragments)

        receipt = self.extractor.extract_receipt_data(fragments, image_hash=image_hash)
        self.review_queue.add_from_receipt(ocr_path.name, receipt)

        return {
            'source': str(ocr_path),
            'receipt': receipt.to_dict(),
            'normalized': self.normalizer.normalize_receipt(receipt),
            'review': self.review_queue.review_reasons(receipt),
        }

    def process_batch(self, input_dir: Path, output_dir: Path) -> List[Dict[str, Any]]:
        """Process every *.json file in input_dir, writing one result per file."""
        ocr_files = sorted(input_dir.glob('*.json'))
        self.stats['total_files'] = len(ocr_files)
        logger.info(f"Found {len(ocr_files)} OCR files in {input_dir}")

        if not ocr_files:
            logger.warning("No OCR files found!")
            return []

        output_dir.mkdir(parents=True, exist_ok=True)
        results = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_file = {
                executor.submit(self.process_file, ocr_file): ocr_file
                for ocr_file in ocr_files
            }

            with tqdm(total=len(ocr_files), desc="Extracting receipts") as pbar:
                for future in as_completed(future_to_file):
                    ocr_file = future_to_file[future]
                    try:
                        result = future.result()
                        write_json(result, output_dir / f"{ocr_file.stem}.result.json")
                        results.append(result)
                        self.stats['processed'] += 1
                    except Exception as e:
                        logger.error(f"Failed to process {ocr_file}: {e}")
                        self.stats['failed'] += 1

                    pbar.update(1)
                    pbar.set_postfix({
                        'processed': self.stats['processed'],
                        'failed': self.stats['failed']
                    })

        self.stats['review_items'] = len(self.review_queue.items)
        logger.info(f"Batch processing complete. Processed: {self.stats['processed']}, "
                    f"Failed: {self.stats['failed']}, Review items: {self.stats['review_items']}")
        return results


@click.group()
@click.option('--rules', type=click.Path(exists=True, path_type=Path),
              help='Path to usage category rules file')
@click.option('--config', 'config_path', type=click.Path(exists=True, path_type=Path),
              help='YAML file overriding extraction settings')
@click.option('--debug', is_flag=True, help='Enable debug output')
@click.pass_context
def cli(ctx, rules: Optional[Path], config_path: Optional[Path], debug: bool):
    """Japanese Receipt Fields - Extract date, payee, amount and usage from OCR output."""
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = ExtractionConfig.from_yaml(config_path) if config_path else ExtractionConfig()
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if rules:
        config = replace(config, rules_path=rules)
    ctx.obj = config


@cli.command()
@click.option('--in', 'ocr_path', required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='OCR fragments JSON file')
@click.option('--image', 'image_path', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Source receipt image, used for the image hash')
@click.option('--out', 'output_path', type=click.Path(dir_okay=False, path_type=Path),
              help='Write the result here instead of stdout')
@click.pass_obj
def extract(config: ExtractionConfig, ocr_path: Path, image_path: Optional[Path], output_path: Optional[Path]):
    """
    Extract receipt fields from one OCR result file.

    Example:
        receipts extract --in ./ocr/receipt1.json --out ./out/receipt1.result.json
    """
    try:
        processor = ReceiptProcessor(config)
        result = processor.process_file(ocr_path, image_path)
        write_json(result, output_path)
    except Exception as e:
        logger.error(f"Extraction failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--in', 'input_dir', required=True, type=click.Path(exists=True, file_okay=False, path_type=Path),
              help='Directory of OCR fragments JSON files')
@click.option('--out', 'output_dir', required=True, type=click.Path(file_okay=False, path_type=Path),
              help='Output directory for results')
@click.option('--max-workers', default=4, type=int,
              help='Maximum number of parallel workers')
@click.pass_obj
def batch(config: ExtractionConfig, input_dir: Path, output_dir: Path, max_workers: int):
    """
    Extract receipt fields from every OCR file in a folder.

    Example:
        receipts batch --in ./ocr --out ./out --max-workers 8
    """
    try:
        processor = ReceiptProcessor(config, max_workers=max_workers)
        results = processor.process_batch(input_dir, output_dir)

        click.echo("\n" + "=" * 50)
        click.echo("PROCESSING SUMMARY")
        click.echo("=" * 50)
        click.echo(f"Total files found: {processor.stats['total_files']}")
        click.echo(f"Successfully processed: {processor.stats['processed']}")
        click.echo(f"Failed: {processor.stats['failed']}")
        click.echo(f"Items needing review: {processor.stats['review_items']}")

        review_summary = processor.review_queue.get_summary()
        for reason, count in sorted(review_summary.get('reason_breakdown', {}).items()):
            click.echo(f"  - {reason}: {count}")

        if not results and processor.stats['total_files']:
            logger.error("No files were processed successfully!")
            sys.exit(1)
    except Exception as e:
        logger.error(f"Processing failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--receipt', 'receipt_path', required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Result JSON written by the extract command')
@click.option('--region', 'region_path', required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='OCR fragments JSON for the extra region')
@click.option('--field', 'field_name', required=True, help='Field to improve: date, payee, amount or usage')
@click.option('--out', 'output_path', type=click.Path(dir_okay=False, path_type=Path),
              help='Write the result here instead of stdout')
@click.pass_obj
def enrich(config: ExtractionConfig, receipt_path: Path, region_path: Path, field_name: str,
           output_path: Optional[Path]):
    """
    Improve one field of an extracted receipt from an additional OCR region.

    Example:
        receipts enrich --receipt ./out/receipt1.result.json --region ./region.json --field amount
    """
    try:
        extractor = ReceiptDataExtractor(config)
        receipt = extractor.add_region_candidates(
            load_receipt(receipt_path),
            load_fragments(region_path),
            field_name,
        )
        write_json({'source': str(receipt_path), 'receipt': receipt.to_dict()}, output_path)
    except Exception as e:
        logger.error(f"Enrichment failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
def era():
    """Show the current Japanese era and era year."""
    current = DateNormalizer().current_era()
    click.echo(f"{current.name}{current.year}年")


if __name__ == '__main__':
    cli()
