import io
import logging
import os

from fpdf import FPDF
from fpdf.enums import XPos, YPos
from pypdf import PdfReader, PdfWriter

from business_portal.services.formatting import format_currency

logger = logging.getLogger(__name__)

NEXT_LINE = dict(new_x=XPos.LMARGIN, new_y=YPos.NEXT)

MONTH_NAMES = ('', 'Januari', 'Februari', 'Maret', 'April', 'Mei', 'Juni', 'Juli',
               'Agustus', 'September', 'Oktober', 'November', 'Desember')


def _latin(text):
    # Core PDF fonts only cover latin-1
    replacements = {
        '\u2018': "'", '\u2019': "'",
        '\u201c': '"', '\u201d': '"',
        '\u2013': '-', '\u2014': '--',
        '\u2026': '...'
    }
    text = str(text if text is not None else '-')
    for old, new in replacements.items():
        text = text.replace(old, new)
    return text.encode('latin-1', 'replace').decode('latin-1')


def generate_payslip_pdf(payroll, company_name=None, summary=None, letterhead=None):
    """Render a payslip and return the PDF bytes.

    ``summary`` is an optional attendance summary row for the payroll period.
    ``letterhead`` is an optional PDF file whose first page is used as the
    background of every page.
    """
    user = payroll.user
    additions = [(i.component.name, i.amount) for i in payroll.items if i.component.type == 'ADDITION']
    deductions = [(i.component.name, i.amount) for i in payroll.items if i.component.type == 'DEDUCTION']
    total_additions, total_deductions = payroll.totals()

    pdf = FPDF(orientation='P', unit='mm', format='A4')
    pdf.set_auto_page_break(auto=True, margin=20)
    pdf.add_page()
    pdf.set_y(40 if letterhead else 15)

    if company_name:
        pdf.set_font("Helvetica", 'B', 14)
        pdf.cell(190, 10, text=_latin(company_name), align='C', **NEXT_LINE)

    pdf.set_font("Helvetica", 'B', 12)
    period = f"{MONTH_NAMES[payroll.month]} {payroll.year}"
    pdf.cell(190, 8, text=f"SLIP GAJI - {period}", align='C', **NEXT_LINE)
    pdf.ln(3)

    # Employee block
    pdf.set_fill_color(245, 245, 245)
    pdf.set_font("Helvetica", 'B', 10)
    pdf.cell(190, 7, text=" DATA KARYAWAN", border=1, fill=True, **NEXT_LINE)
    for label, value in (("Nama", user.name), ("Departemen", user.department), ("Jabatan", user.role)):
        pdf.set_font("Helvetica", 'B', 9)
        pdf.cell(40, 7, text=f" {label}:", border='LB')
        pdf.set_font("Helvetica", '', 9)
        pdf.cell(150, 7, text=_latin(value), border='RB', **NEXT_LINE)
    pdf.ln(3)

    # Additions / deductions table
    pdf.set_font("Helvetica", 'B', 10)
    pdf.cell(60, 7, text=" PENDAPATAN", border=1, fill=True)
    pdf.cell(35, 7, text="Jumlah", border=1, fill=True, align='C')
    pdf.cell(60, 7, text=" POTONGAN", border=1, fill=True)
    pdf.cell(35, 7, text="Jumlah", border=1, fill=True, align='C', **NEXT_LINE)

    earnings = [("Gaji Pokok", payroll.basic_salary)] + additions
    pdf.set_font("Helvetica", '', 9)
    for i in range(max(len(earnings), len(deductions))):
        if i < len(earnings):
            pdf.cell(60, 6, text=_latin(earnings[i][0]), border='L')
            pdf.cell(35, 6, text=format_currency(earnings[i][1]), border='R', align='R')
        else:
            pdf.cell(95, 6, text="", border='LR')
        if i < len(deductions):
            pdf.cell(60, 6, text=_latin(deductions[i][0]))
            pdf.cell(35, 6, text=format_currency(deductions[i][1]), border='R', align='R', **NEXT_LINE)
        else:
            pdf.cell(95, 6, text="", border='R', **NEXT_LINE)

    pdf.set_font("Helvetica", 'B', 9)
    pdf.cell(60, 7, text="TOTAL PENDAPATAN", border='LTB')
    pdf.cell(35, 7, text=format_currency(payroll.basic_salary + total_additions), border='RTB', align='R')
    pdf.cell(60, 7, text="TOTAL POTONGAN", border='TB')
    pdf.cell(35, 7, text=format_currency(total_deductions), border='RTB', align='R', **NEXT_LINE)
    pdf.ln(3)

    pdf.set_font("Helvetica", 'B', 12)
    pdf.cell(190, 10, text=f"GAJI BERSIH:  Rp {format_currency(payroll.net_salary)}", border=1, align='C', **NEXT_LINE)

    if summary:
        pdf.ln(3)
        pdf.set_font("Helvetica", 'B', 10)
        pdf.cell(190, 7, text=" REKAP KEHADIRAN", border=1, **NEXT_LINE)
        columns = (
            ("Hari", summary['totalWorkDays']),
            ("Terlambat", summary['lateCount']),
            ("Menit Telat", summary['lateMinutes']),
            ("Alpa", summary['absentCount']),
            ("Izin", summary['permitCount']),
        )
        width = 190 / len(columns)
        pdf.set_font("Helvetica", '', 9)
        for label, _ in columns:
            pdf.cell(width, 7, text=label, border=1, align='C')
        pdf.ln()
        pdf.set_font("Helvetica", 'B', 9)
        for _, value in columns:
            pdf.cell(width, 7, text=str(value), border=1, align='C')
        pdf.ln()

    pdf.set_font("Helvetica", 'I', 7)
    pdf.ln(5)
    pdf.cell(190, 5, text="Dokumen ini dibuat oleh sistem dan tidak memerlukan tanda tangan.", align='C', **NEXT_LINE)

    content = bytes(pdf.output())
    if letterhead and os.path.exists(letterhead):
        return merge_with_letterhead(content, letterhead)
    if letterhead:
        logger.warning('Letterhead %s not found, rendering plain payslip', letterhead)
    return content


def merge_with_letterhead(content, template_path):
    content_reader = PdfReader(io.BytesIO(content))
    writer = PdfWriter()

    for content_page in content_reader.pages:
        page = PdfReader(template_path).pages[0]
        page.merge_page(content_page)
        writer.add_page(page)

    output = io.BytesIO()
    writer.write(output)
    return output.getvalue()

