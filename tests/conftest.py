from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest


METS_MONOGRAPH = """<?xml version="1.0" encoding="UTF-8"?>
<mets:mets xmlns:mets="http://www.loc.gov/METS/" xmlns:mods="http://www.loc.gov/mods/v3" xmlns:xlink="http://www.w3.org/1999/xlink">
  <mets:dmdSec ID="DMDLOG_0000">
    <mets:mdWrap MDTYPE="MODS">
      <mets:xmlData>
        <mods:mods>
          <mods:titleInfo><mods:title>Reise nach Italien</mods:title></mods:titleInfo>
          <mods:name><mods:displayForm>Goethe, Johann Wolfgang</mods:displayForm></mods:name>
          <mods:originInfo><mods:dateIssued>1816</mods:dateIssued></mods:originInfo>
          <mods:classification>Literatur.Reise</mods:classification>
          <mods:recordInfo><mods:recordIdentifier>PPN123</mods:recordIdentifier></mods:recordInfo>
        </mods:mods>
      </mets:xmlData>
    </mets:mdWrap>
  </mets:dmdSec>
  <mets:dmdSec ID="DMDLOG_0001">
    <mets:mdWrap MDTYPE="MODS">
      <mets:xmlData>
        <mods:mods>
          <mods:titleInfo><mods:title>Erstes Kapitel</mods:title></mods:titleInfo>
        </mods:mods>
      </mets:xmlData>
    </mets:mdWrap>
  </mets:dmdSec>
  <mets:fileSec>
    <mets:fileGrp USE="PRESENTATION">
      <mets:file ID="FILE_0001"><mets:FLocat LOCTYPE="URL" xlink:href="images/00000001.tif"/></mets:file>
      <mets:file ID="FILE_0002"><mets:FLocat LOCTYPE="URL" xlink:href="images/00000002.tif"/></mets:file>
    </mets:fileGrp>
  </mets:fileSec>
  <mets:structMap TYPE="LOGICAL">
    <mets:div ID="LOG_0000" DMDID="DMDLOG_0000" TYPE="monograph" LABEL="Reise nach Italien">
      <mets:div ID="LOG_0001" DMDID="DMDLOG_0001" TYPE="chapter" LABEL="Erstes Kapitel"/>
      <mets:div ID="LOG_0002" TYPE="chapter" LABEL="Zweites Kapitel"/>
    </mets:div>
  </mets:structMap>
  <mets:structMap TYPE="PHYSICAL">
    <mets:div ID="PHYS_0000" TYPE="physSequence">
      <mets:div ID="PHYS_0001" ORDER="1" ORDERLABEL="I" TYPE="page"><mets:fptr FILEID="FILE_0001"/></mets:div>
      <mets:div ID="PHYS_0002" ORDER="2" ORDERLABEL="II" TYPE="page"><mets:fptr FILEID="FILE_0002"/></mets:div>
    </mets:div>
  </mets:structMap>
</mets:mets>
"""

METS_ANCHOR = """<?xml version="1.0" encoding="UTF-8"?>
<mets:mets xmlns:mets="http://www.loc.gov/METS/" xmlns:mods="http://www.loc.gov/mods/v3" xmlns:xlink="http://www.w3.org/1999/xlink">
  <mets:dmdSec ID="DMDLOG_0000">
    <mets:mdWrap MDTYPE="MODS">
      <mets:xmlData>
        <mods:mods>
          <mods:titleInfo><mods:title>Allgemeine Zeitung</mods:title></mods:titleInfo>
          <mods:recordInfo><mods:recordIdentifier>PPN_ANCHOR</mods:recordIdentifier></mods:recordInfo>
        </mods:mods>
      </mets:xmlData>
    </mets:mdWrap>
  </mets:dmdSec>
  <mets:structMap TYPE="LOGICAL">
    <mets:div ID="LOG_0000" DMDID="DMDLOG_0000" TYPE="periodical" LABEL="Allgemeine Zeitung">
      <mets:div ID="LOG_0001" TYPE="volume" LABEL="Jahrgang 1850">
        <mets:mptr LOCTYPE="URL" xlink:href="https://example.org/mets/PPN_VOL.xml"/>
      </mets:div>
    </mets:div>
  </mets:structMap>
</mets:mets>
"""

METS_VOLUME = """<?xml version="1.0" encoding="UTF-8"?>
<mets:mets xmlns:mets="http://www.loc.gov/METS/" xmlns:mods="http://www.loc.gov/mods/v3" xmlns:xlink="http://www.w3.org/1999/xlink">
  <mets:dmdSec ID="DMDLOG_0001">
    <mets:mdWrap MDTYPE="MODS">
      <mets:xmlData>
        <mods:mods>
          <mods:titleInfo><mods:title>Jahrgang 1850</mods:title></mods:titleInfo>
          <mods:part><mods:detail><mods:number>1850</mods:number></mods:detail></mods:part>
          <mods:relatedItem type="host">
            <mods:recordInfo><mods:recordIdentifier>PPN_ANCHOR</mods:recordIdentifier></mods:recordInfo>
          </mods:relatedItem>
          <mods:recordInfo><mods:recordIdentifier>PPN_VOL</mods:recordIdentifier></mods:recordInfo>
        </mods:mods>
      </mets:xmlData>
    </mets:mdWrap>
  </mets:dmdSec>
  <mets:fileSec>
    <mets:fileGrp USE="DEFAULT">
      <mets:file ID="FILE_0001"><mets:FLocat LOCTYPE="URL" xlink:href="00000001.jpg"/></mets:file>
    </mets:fileGrp>
  </mets:fileSec>
  <mets:structMap TYPE="LOGICAL">
    <mets:div ID="LOG_0000" TYPE="periodical">
      <mets:mptr LOCTYPE="URL" xlink:href="https://example.org/mets/PPN_ANCHOR.xml"/>
      <mets:div ID="LOG_0001" DMDID="DMDLOG_0001" TYPE="volume" LABEL="Jahrgang 1850"/>
    </mets:div>
  </mets:structMap>
  <mets:structMap TYPE="PHYSICAL">
    <mets:div ID="PHYS_0000" TYPE="physSequence">
      <mets:div ID="PHYS_0001" ORDER="1" TYPE="page"><mets:fptr FILEID="FILE_0001"/></mets:div>
    </mets:div>
  </mets:structMap>
</mets:mets>
"""

METS_MARC_VOLUME = """<?xml version="1.0" encoding="UTF-8"?>
<mets:mets xmlns:mets="http://www.loc.gov/METS/" xmlns:marc="http://www.loc.gov/MARC21/slim" xmlns:xlink="http://www.w3.org/1999/xlink">
  <mets:dmdSec ID="DMDLOG_0001">
    <mets:mdWrap MDTYPE="MARC">
      <mets:xmlData>
        <marc:collection>
          <marc:record>
            <marc:controlfield tag="001">990001</marc:controlfield>
            <marc:datafield tag="245" ind1="1" ind2="0"><marc:subfield code="a">Annalen der Physik</marc:subfield></marc:datafield>
            <marc:datafield tag="773" ind1="0" ind2="8"><marc:subfield code="w">ZDB123</marc:subfield></marc:datafield>
          </marc:record>
        </marc:collection>
      </mets:xmlData>
    </mets:mdWrap>
  </mets:dmdSec>
  <mets:structMap TYPE="LOGICAL">
    <mets:div ID="LOG_0001" DMDID="DMDLOG_0001" TYPE="volume" LABEL="Band 1"/>
  </mets:structMap>
  <mets:structMap TYPE="PHYSICAL">
    <mets:div ID="PHYS_0000" TYPE="physSequence"/>
  </mets:structMap>
</mets:mets>
"""

EAD_FINDING_AID = """<?xml version="1.0" encoding="UTF-8"?>
<ead xmlns="urn:isbn:1-931666-22-9">
  <eadheader><eadid>EAD_0001</eadid></eadheader>
  <archdesc level="collection" id="ARCH">
    <did><unittitle>Nachlass Mueller</unittitle><unitid>NL-1</unitid></did>
    <dsc>
      <c id="c1" level="series">
        <did><unittitle>Korrespondenz</unittitle></did>
        <c id="c1_1" level="file"><did><unittitle>Briefe 1900</unittitle></did></c>
      </c>
      <c id="c2" level="series"><did><unittitle>Fotografien</unittitle></did></c>
    </dsc>
  </archdesc>
</ead>
"""

EAD3_FINDING_AID = """<?xml version="1.0" encoding="UTF-8"?>
<ead xmlns="http://ead3.archivists.org/schema/">
  <control><recordid>EAD3_0001</recordid></control>
  <archdesc level="fonds">
    <did><unittitle>Bestand Stadtrat</unittitle></did>
    <dsc>
      <c id="a1" level="series"><did><unittitle>Protokolle</unittitle></did></c>
    </dsc>
  </archdesc>
</ead>
"""

LIDO_OBJECT = """<?xml version="1.0" encoding="UTF-8"?>
<lido:lido xmlns:lido="http://www.lido-schema.org">
  <lido:lidoRecID lido:type="local">LIDO-42</lido:lidoRecID>
  <lido:descriptiveMetadata xml:lang="de">
    <lido:objectClassificationWrap>
      <lido:objectWorkTypeWrap>
        <lido:objectWorkType><lido:term>painting</lido:term></lido:objectWorkType>
      </lido:objectWorkTypeWrap>
    </lido:objectClassificationWrap>
    <lido:objectIdentificationWrap>
      <lido:titleWrap>
        <lido:titleSet><lido:appellationValue>Abendlandschaft</lido:appellationValue></lido:titleSet>
      </lido:titleWrap>
    </lido:objectIdentificationWrap>
    <lido:objectRelationWrap>
      <lido:relatedWorksWrap>
        <lido:relatedWorkSet>
          <lido:relatedWork><lido:object><lido:objectID>SERIES-1</lido:objectID></lido:object></lido:relatedWork>
          <lido:relatedWorkRelType><lido:term>is part of</lido:term></lido:relatedWorkRelType>
        </lido:relatedWorkSet>
      </lido:relatedWorksWrap>
    </lido:objectRelationWrap>
  </lido:descriptiveMetadata>
  <lido:administrativeMetadata xml:lang="de">
    <lido:resourceWrap>
      <lido:resourceSet lido:sortorder="2">
        <lido:resourceRepresentation><lido:linkResource>https://images.example.org/b.jpg</lido:linkResource></lido:resourceRepresentation>
      </lido:resourceSet>
      <lido:resourceSet lido:sortorder="1">
        <lido:resourceRepresentation><lido:linkResource>https://images.example.org/a.jpg</lido:linkResource></lido:resourceRepresentation>
      </lido:resourceSet>
    </lido:resourceWrap>
  </lido:administrativeMetadata>
</lido:lido>
"""

DUBLINCORE_RECORD = """<?xml version="1.0" encoding="UTF-8"?>
<record xmlns:dc="http://purl.org/dc/elements/1.1/" xmlns:dcterms="http://purl.org/dc/terms/">
  <dc:identifier>DC-7</dc:identifier>
  <dc:title>Stadtplan von Leipzig</dc:title>
  <dc:creator>Unbekannt</dc:creator>
  <dc:type>map</dc:type>
  <dc:relation>scan_001.jpg</dc:relation>
  <dc:relation>scan_002.jpg</dc:relation>
</record>
"""


@pytest.fixture
def write_record(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def records() -> dict[str, str]:
    return {
        "mets": METS_MONOGRAPH,
        "mets_anchor": METS_ANCHOR,
        "mets_volume": METS_VOLUME,
        "mets_marc": METS_MARC_VOLUME,
        "ead": EAD_FINDING_AID,
        "ead3": EAD3_FINDING_AID,
        "lido": LIDO_OBJECT,
        "dublincore": DUBLINCORE_RECORD,
    }
