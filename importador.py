import os
import sys
import argparse
import logging
import zipfile

from extratores.lote import processar_xmls, processar_zip
from extratores.planilha import gerar_relatorio_excel

log = logging.getLogger(__name__)


def configurar_logging(log_file="importador.log"):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def listar_xmls(xml_dir):
    xml_paths = []
    for root, _, files in os.walk(xml_dir):
        for file in sorted(files):
            if file.lower().endswith(".xml"):
                xml_paths.append(os.path.join(root, file))
    return xml_paths


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Importa XMLs fiscais (NF-e, CT-e e eventos de cancelamento) e gera um relatório Excel."
    )
    parser.add_argument("--cnpj", help="CNPJ da empresa para classificar as notas em Entrada/Saída.")
    parser.add_argument("--xml-dir", help="Diretório contendo os arquivos XML.")
    parser.add_argument("--zip-file", help="Caminho para o arquivo ZIP contendo os XMLs.")
    parser.add_argument("--output", default="relatorio_fiscal.xlsx", help="Caminho para o arquivo de saída Excel.")

    args = parser.parse_args(argv)
    configurar_logging()

    if not args.xml_dir and not args.zip_file:
        log.error("É necessário fornecer --xml-dir ou --zip-file.")
        parser.print_help()
        return 2

    if args.zip_file:
        if not os.path.exists(args.zip_file):
            log.error(f"Arquivo ZIP não encontrado: {args.zip_file}")
            return 1
        try:
            resultado = processar_zip(args.zip_file, args.cnpj)
        except zipfile.BadZipFile:
            log.error("Falha no processamento")
            return 1
    else:
        if not os.path.isdir(args.xml_dir):
            log.error(f"Diretório XML não encontrado: {args.xml_dir}")
            return 1
        xml_paths = listar_xmls(args.xml_dir)
        if not xml_paths:
            log.warning("Nenhum arquivo XML encontrado para processamento.")
            return 0
        resultado = processar_xmls(xml_paths, args.cnpj)

    try:
        gerar_relatorio_excel(resultado, args.output)
    except (OSError, ValueError) as e:
        log.error(f"Erro ao gerar o relatório: {e}", exc_info=True)
        log.error("Falha no processamento")
        return 1

    log.info(f"Relatório salvo em: {args.output}")
    log.info("=== Resumo ===")
    for k, v in resultado.resumo().items():
        log.info(f"{k}: {v}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
