"""Example usage of the rule-based receipt field extractor.

This example feeds a saved OCR result, as returned by Document AI's Expense
Parser, through ReceiptFieldExtractor and prints the structured record.
Entity values win over the raw text; fields without an entity fall back to
pattern matching on the text.
"""

from slipscan import OcrEntity, RawOcrResult, extract_receipt


def main():
    """Example of extracting receipt fields from OCR output."""
    ocr_text = """
    BLUE BOTTLE COFFEE
    (415) 555-0199
    03/14/2025 08:42 AM
    Latte                 $5.25
    Almond Croissant      $4.75
    Subtotal             $10.00
    Tax                   $0.88
    Total                $10.88
    VISA ************4242
    """

    raw = RawOcrResult(
        text=ocr_text,
        entities=[
            OcrEntity(type="supplier_name", mention_text="Blue Bottle", confidence=0.93),
            OcrEntity(type="total_amount", mention_text="$10.88", confidence=0.97),
        ],
    )

    receipt = extract_receipt(raw)

    print(f"Merchant: {receipt.merchant_name}")
    print(f"Date: {receipt.date} {receipt.time or ''}")
    print(f"Subtotal: {receipt.subtotal_amount}")
    print(f"Tax: {receipt.tax_amount}")
    print(f"Total: {receipt.total_amount} {receipt.currency}")
    print(f"Paid with: {receipt.payment_method}")
    print(f"Confidence: {receipt.confidence_score:.2f}")

    print("\nItems:")
    for item in receipt.line_items:
        print(f"  - {item.description}: {item.amount}")

    # Corrections produce a new validated record
    corrected = receipt.amended(merchant_name="Blue Bottle Coffee")
    print("\n" + corrected.to_json())


if __name__ == "__main__":
    main()
