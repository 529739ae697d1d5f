"""
HL7 aECG (Annotated ECG / FDA standard) reader and writer.

HL7 aECG structure:
<AnnotatedECG xmlns="urn:hl7-org:v3">
  ...
  <component><series><component><sequenceSet>
    <component><sequence>  (TIME_ABSOLUTE with <increment>)
    <component><sequence>  (MDC_ECG_LEAD_X with <origin>, <scale>, <digits>)
    ...
  </sequenceSet></component></series></component>
</AnnotatedECG>

Lead data in <digits> as space-separated integers, physical value in uV is
digit * scale + origin.
"""
import logging
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..settings import settings
from ..workspace import SignalRecord
from .base import SignalReader
from .waveform_codec import gain_from_resolution

logger = logging.getLogger(__name__)

HL7_NS = "urn:hl7-org:v3"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
MDC_LEAD_PREFIX = "MDC_ECG_LEAD_"
ACT_CODE_SYSTEM = "2.16.840.1.113883.5.4"
MDC_CODE_SYSTEM = "2.16.840.1.113883.6.24"

# MDC spells the augmented limb leads in upper case
_MDC_TO_LEAD = {"AVR": "aVR", "AVL": "aVL", "AVF": "aVF"}
_LEAD_TO_MDC = {lead: code for code, lead in _MDC_TO_LEAD.items()}


class HL7Reader(SignalReader):
    """Loads an HL7 aECG XML file."""

    def parse(self) -> bool:
        try:
            tree = ET.parse(self.source_path)
        except (ET.ParseError, OSError) as e:
            logger.error(f"XML parse error in HL7 aECG {self.source_path}: {e}")
            return False

        root = tree.getroot()
        ns = ''
        if '}' in root.tag:
            ns = root.tag.split('}')[0] + '}'

        def ns_tag(tag):
            return f'{ns}{tag}'

        # lead -> (digits, scale in uV per digit or None, origin in uV)
        lead_data: Dict[str, Tuple[List[int], Optional[float], float]] = {}
        sample_rate = 0.0

        for sequence in root.iter(ns_tag('sequence')):
            code_elem = sequence.find(ns_tag('code'))
            value_elem = sequence.find(ns_tag('value'))
            if code_elem is None or value_elem is None:
                continue

            code_val = code_elem.get('code', '')

            if code_val == 'TIME_ABSOLUTE':
                inc_elem = value_elem.find(ns_tag('increment'))
                if inc_elem is not None:
                    try:
                        inc_val = float(inc_elem.get('value', '0'))
                        if inc_val > 0:
                            sample_rate = round(1.0 / inc_val, 3)
                    except ValueError:
                        logger.warning(f"HL7 aECG: bad increment {inc_elem.get('value')!r}")
                continue

            if not code_val.startswith(MDC_LEAD_PREFIX):
                continue

            mdc_name = code_val[len(MDC_LEAD_PREFIX):]
            lead_name = _MDC_TO_LEAD.get(mdc_name, mdc_name)

            lead_scale = None
            scale_elem = value_elem.find(ns_tag('scale'))
            if scale_elem is not None:
                try:
                    lead_scale = float(scale_elem.get('value', ''))
                except ValueError:
                    logger.warning(f"HL7 aECG: bad scale {scale_elem.get('value')!r} for lead {lead_name}")
                if lead_scale is not None and lead_scale <= 0:
                    lead_scale = None

            origin_val = 0.0
            origin_elem = value_elem.find(ns_tag('origin'))
            if origin_elem is not None:
                try:
                    origin_val = float(origin_elem.get('value', '0'))
                except ValueError:
                    pass

            digits_elem = value_elem.find(ns_tag('digits'))
            if digits_elem is None or not digits_elem.text:
                continue

            try:
                raw_digits = [int(d) for d in digits_elem.text.split()]
            except ValueError:
                logger.warning(f"HL7 aECG: could not parse digits for lead {lead_name}")
                continue

            lead_data[lead_name] = (raw_digits, lead_scale, origin_val)
            logger.debug(f"HL7 aECG: extracted {len(raw_digits)} samples for lead {lead_name}")

        if not lead_data:
            logger.error(f"No waveform data found in HL7 aECG: {self.source_path}")
            return False

        if sample_rate <= 0:
            logger.error(f"HL7 aECG without TIME_ABSOLUTE increment: {self.source_path}")
            return False

        # the first explicit scale sets the shared unit; leads without one are taken to use it
        scale_val = next((scale for _, scale, _ in lead_data.values() if scale), None)
        unit = scale_val or 1000.0 / settings.DEFAULT_ADU_GAIN

        leads: Dict[str, List[int]] = {}
        for lead_name, (raw_digits, lead_scale, origin_val) in lead_data.items():
            lead_scale = lead_scale or unit
            if lead_scale != unit:
                logger.info(
                    f"HL7 aECG: rescaling lead {lead_name} from {lead_scale}uV to {unit}uV per digit"
                )
                samples = [int(round(d * lead_scale / unit)) for d in raw_digits]
            else:
                samples = raw_digits
            # fold the origin into sample units so every lead shares one gain
            offset = int(round(origin_val / unit))
            leads[lead_name] = [s + offset for s in samples]

        n_samples = min(len(samples) for samples in leads.values())
        if any(len(samples) != n_samples for samples in leads.values()):
            logger.warning(f"HL7 aECG leads differ in length, truncating to {n_samples} samples")

        self._set_matrix(np.array([samples[:n_samples] for samples in leads.values()]))
        self.sampling_rate = sample_rate
        self.adu_gain = gain_from_resolution(scale_val)
        self.lead_names = list(leads.keys())

        logger.info(f"HL7 aECG: extracted {len(leads)} leads "
                    f"({self.lead_names}), {sample_rate}Hz")
        return True


def write_hl7(record: SignalRecord, output_file: Path, record_name: str) -> int:
    """
    Write a record as an HL7 aECG XML document.

    Returns:
        Number of samples written per lead
    """
    ET.register_namespace('', HL7_NS)
    ET.register_namespace('xsi', XSI_NS)

    def tag(name):
        return f'{{{HL7_NS}}}{name}'

    xsi_type = f'{{{XSI_NS}}}type'
    scale = 1000.0 / record.adu_gain

    root = ET.Element(tag('AnnotatedECG'))
    ET.SubElement(root, tag('id'), root=record_name)
    ET.SubElement(root, tag('code'), code='93000', codeSystem='2.16.840.1.113883.6.12')
    effective = ET.SubElement(root, tag('effectiveTime'))
    ET.SubElement(effective, tag('low'), value=datetime.now().strftime('%Y%m%d%H%M%S'))

    series = ET.SubElement(ET.SubElement(root, tag('component')), tag('series'))
    ET.SubElement(series, tag('code'), code='RHYTHM', codeSystem=ACT_CODE_SYSTEM)
    sequence_set = ET.SubElement(ET.SubElement(series, tag('component')), tag('sequenceSet'))

    time_seq = ET.SubElement(ET.SubElement(sequence_set, tag('component')), tag('sequence'))
    ET.SubElement(time_seq, tag('code'), code='TIME_ABSOLUTE', codeSystem=ACT_CODE_SYSTEM)
    time_value = ET.SubElement(time_seq, tag('value'), {xsi_type: 'GLIST_TS'})
    ET.SubElement(time_value, tag('head'), value=effective[0].get('value'))
    ET.SubElement(time_value, tag('increment'), value=repr(1.0 / record.sampling_rate), unit='s')

    for label, samples in zip(record.channel_labels(), record.data):
        lead_seq = ET.SubElement(ET.SubElement(sequence_set, tag('component')), tag('sequence'))
        code = MDC_LEAD_PREFIX + _LEAD_TO_MDC.get(label, label)
        ET.SubElement(lead_seq, tag('code'), code=code, codeSystem=MDC_CODE_SYSTEM)
        lead_value = ET.SubElement(lead_seq, tag('value'), {xsi_type: 'SLIST_PQ'})
        ET.SubElement(lead_value, tag('origin'), value='0', unit='uV')
        ET.SubElement(lead_value, tag('scale'), value=repr(scale), unit='uV')
        ET.SubElement(lead_value, tag('digits')).text = ' '.join(str(int(s)) for s in samples)

    output_file.parent.mkdir(parents=True, exist_ok=True)
    ET.ElementTree(root).write(output_file, encoding='utf-8', xml_declaration=True)

    logger.info(f"writeHL7({output_file}, {record_name}): {record.samples_per_channel} rows")
    return record.samples_per_channel
